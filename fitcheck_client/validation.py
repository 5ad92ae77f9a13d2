from __future__ import annotations

MIN_PASSWORD_LENGTH = 6


class ValidationError(ValueError):
    pass


def validate_sign_in(email: str, password: str) -> None:
    if not (email or "").strip() or not password:
        raise ValidationError("Email and password are required")


def validate_sign_up(email: str, password: str, username: str) -> None:
    if not (email or "").strip() or not password or not (username or "").strip():
        raise ValidationError("All fields are required")

    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


def require_text(text: str, message: str) -> str:
    cleaned = (text or "").strip()
    if not cleaned:
        raise ValidationError(message)
    return cleaned


def validate_rating(rating: int) -> int:
    if not isinstance(rating, int) or isinstance(rating, bool) or not 1 <= rating <= 5:
        raise ValidationError("Please provide a rating and comment")
    return rating
