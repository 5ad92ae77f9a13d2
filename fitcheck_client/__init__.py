from fitcheck_client.config import AppSettings, ConfigurationError
from fitcheck_client.models import ActionResult, MutationOutcome, Session, SessionState
from fitcheck_client.optimistic import OptimisticMutationCoordinator
from fitcheck_client.services import FitCheckService, build_service
from fitcheck_client.session import AuthenticationError, SessionManager

__all__ = [
    "ActionResult",
    "AppSettings",
    "AuthenticationError",
    "ConfigurationError",
    "FitCheckService",
    "MutationOutcome",
    "OptimisticMutationCoordinator",
    "Session",
    "SessionManager",
    "SessionState",
    "build_service",
]
