"""Client-side OAuth2 authorization-code sessions for Frappe servers."""

from .config import Settings, load_settings
from .errors import (
    AuthorizationError,
    ConfigurationError,
    ExchangeFailed,
    FlowStateError,
    IdentityLookupError,
    RefreshError,
    SessionError,
    StorageError,
    UnauthorizedError,
)
from .flow import AuthorizationFlow, AuthorizationPrompt, FlowState
from .identity import IdentityResolver
from .manager import SessionManager
from .oauth2.kv import Keystore, MemoryKeystore
from .oauth2.types import (
    UNAUTHENTICATED,
    Authenticated,
    AuthorizationOutcome,
    AuthState,
    Cancelled,
    Error,
    Session,
    Success,
    Unauthenticated,
)
from .refresh import TokenRefresher
from .store import SessionStore

__all__ = [
    "UNAUTHENTICATED",
    "AuthState",
    "Authenticated",
    "AuthorizationError",
    "AuthorizationFlow",
    "AuthorizationOutcome",
    "AuthorizationPrompt",
    "Cancelled",
    "ConfigurationError",
    "Error",
    "ExchangeFailed",
    "FlowState",
    "FlowStateError",
    "IdentityLookupError",
    "IdentityResolver",
    "Keystore",
    "MemoryKeystore",
    "RefreshError",
    "Session",
    "SessionError",
    "SessionManager",
    "SessionStore",
    "Settings",
    "StorageError",
    "Success",
    "TokenRefresher",
    "Unauthenticated",
    "UnauthorizedError",
    "load_settings",
]
