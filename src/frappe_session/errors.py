class SessionError(Exception):
    """Base class for every failure raised by frappe_session."""


class ConfigurationError(SessionError):
    pass


class StorageError(SessionError):
    """The keystore could not be read or written."""


class AuthorizationError(SessionError):
    """The user cancelled the authorization UI or the redirect reported an error."""

    def __init__(self, detail: str, cancelled: bool = False):
        super().__init__(detail)
        self.detail = detail
        self.cancelled = cancelled


class HttpError(SessionError):
    """A remote endpoint answered with something other than success."""

    def __init__(self, detail: str, status: int | None = None):
        super().__init__(f"{detail} (status={status})" if status else detail)
        self.detail = detail
        self.status = status


class ExchangeFailed(HttpError):
    """The token endpoint rejected the authorization code."""


class RefreshError(HttpError):
    """The refresh token was rejected, or the refresh request failed."""


class IdentityLookupError(HttpError):
    pass


class UnauthorizedError(IdentityLookupError):
    """The identity endpoint rejected the access token (401/403)."""


class FlowStateError(SessionError):
    """An AuthorizationFlow step was called out of order, or the flow was reused."""
