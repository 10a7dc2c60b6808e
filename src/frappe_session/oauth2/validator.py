from typing import Any


# Checks a token endpoint response body carries a usable token pair
def is_valid_token_response(obj: Any) -> bool:
    if not isinstance(obj, dict):
        return False

    for field in ["access_token", "refresh_token"]:
        value = obj.get(field)
        if not isinstance(value, str) or not value:
            return False

    token_type = obj.get("token_type")
    if token_type is not None and str(token_type).lower() != "bearer":
        return False

    expires_in = obj.get("expires_in")
    if expires_in is not None and not isinstance(expires_in, (int, float)):
        return False

    return True


def error_detail(obj: Any, fallback: str) -> str:
    """Extracts an OAuth error description from a JSON error body."""

    if not isinstance(obj, dict):
        return fallback
    error = obj.get("error")
    description = obj.get("error_description")
    if error and description:
        return f"{error}: {description}"
    return str(error or description or obj.get("exc_type") or fallback)
