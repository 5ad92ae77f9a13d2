from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
import sys


class ConfigurationError(ValueError):
    pass


DEFAULT_BASE_URL = "http://localhost:5175"


@dataclass(frozen=True)
class AppSettings:
    base_url: str
    timeout_seconds: int
    retry_attempts: int
    session_store_path: str
    remember_me_days: int
    log_level: str = "INFO"

    @staticmethod
    def from_env() -> "AppSettings":
        _load_dotenv_if_present()

        base_url = (
            os.getenv("FITCHECK_API_BASE_URL", "").strip()
            or os.getenv("EXPO_PUBLIC_API_BASE_URL", "").strip()
            or DEFAULT_BASE_URL
        ).rstrip("/")

        timeout_seconds = _int_from_env("FITCHECK_TIMEOUT_SECONDS", 20)
        retry_attempts = _int_from_env("FITCHECK_RETRY_ATTEMPTS", 2)
        remember_me_days = _int_from_env("FITCHECK_REMEMBER_ME_DAYS", 7)

        default_store_path = os.path.join(
            os.getenv("LOCALAPPDATA", os.path.expanduser("~")),
            ".fitcheck",
            "session.bin",
        )
        session_store_path = os.getenv("FITCHECK_SESSION_STORE_PATH", default_store_path)
        log_level = os.getenv("FITCHECK_LOG_LEVEL", "INFO").strip().upper()

        settings = AppSettings(
            base_url=base_url,
            timeout_seconds=timeout_seconds,
            retry_attempts=retry_attempts,
            session_store_path=session_store_path,
            remember_me_days=remember_me_days,
            log_level=log_level,
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if not self.base_url.startswith(("http://", "https://")):
            raise ConfigurationError("FITCHECK_API_BASE_URL must start with http:// or https://")

        if self.timeout_seconds <= 0:
            raise ConfigurationError("FITCHECK_TIMEOUT_SECONDS must be greater than 0")

        if self.retry_attempts < 0:
            raise ConfigurationError("FITCHECK_RETRY_ATTEMPTS must be 0 or greater")

        if self.remember_me_days <= 0:
            raise ConfigurationError("FITCHECK_REMEMBER_ME_DAYS must be greater than 0")

        if not self.session_store_path.strip():
            raise ConfigurationError("FITCHECK_SESSION_STORE_PATH must not be empty")

        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if self.log_level not in valid_levels:
            raise ConfigurationError(
                "FITCHECK_LOG_LEVEL must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL"
            )


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def _load_dotenv_if_present(file_name: str = ".env") -> None:
    for candidate in _candidate_env_files(file_name):
        _load_env_file(candidate)


def _candidate_env_files(file_name: str) -> list[Path]:
    candidates: list[Path] = []

    explicit = os.getenv("FITCHECK_ENV_FILE", "").strip()
    if explicit:
        candidates.append(Path(explicit).expanduser())

    candidates.append(Path.cwd() / file_name)

    if getattr(sys, "frozen", False):
        candidates.append(Path(sys.executable).resolve().parent / file_name)
    else:
        candidates.append(Path(__file__).resolve().parent.parent / file_name)

    unique_candidates: list[Path] = []
    seen: set[str] = set()
    for path in candidates:
        normalized = str(path.resolve()) if path.exists() else str(path)
        if normalized in seen:
            continue
        seen.add(normalized)
        unique_candidates.append(path)
    return unique_candidates


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return

    try:
        with path.open("r", encoding="utf-8") as env_file:
            for raw_line in env_file:
                line = raw_line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue

                key, value = line.split("=", 1)
                key = key.strip()
                value = value.strip().strip('"').strip("'")

                # the process environment wins over the file
                if key and key not in os.environ:
                    os.environ[key] = value
    except OSError:
        return
