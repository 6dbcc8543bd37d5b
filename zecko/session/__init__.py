"""Client-side session layer: transport, cache, poller, role router and guard."""

from .errors import (
    CredentialRejectedError,
    MalformedResponseError,
    SessionError,
    TransientNetworkError,
    UnauthorizedError,
)
from .guard import GuardDecision, GuardOutcome, evaluate_access, protected
from .manager import AuthResult, AuthSession
from .poller import VerificationPoller
from .roles import landing_path, registration_landing_path
from .store import SessionState, SessionStore
from .transport import (
    CredentialTransport,
    FileTokenStore,
    MemoryTokenStore,
    TokenStore,
    VerifyResult,
)

__all__ = [
    "AuthResult",
    "AuthSession",
    "CredentialRejectedError",
    "CredentialTransport",
    "FileTokenStore",
    "GuardDecision",
    "GuardOutcome",
    "MalformedResponseError",
    "MemoryTokenStore",
    "SessionError",
    "SessionState",
    "SessionStore",
    "TokenStore",
    "TransientNetworkError",
    "UnauthorizedError",
    "VerificationPoller",
    "VerifyResult",
    "evaluate_access",
    "landing_path",
    "protected",
    "registration_landing_path",
]
