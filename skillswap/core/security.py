# Token issuance and verification belong to the external auth service.
# This module only adapts its token format so the rest of the app can
# resolve a bearer token to a user id.

TOKEN_PREFIX = "fake-jwt-token-for-"


def create_access_token(data: dict) -> str:
    """
    Placeholder for creating an access token.
    Used by scripts and tests; real tokens come from the auth service.
    """
    return f"{TOKEN_PREFIX}{data.get('sub')}"


def decode_access_token(token: str) -> str | None:
    """
    Placeholder for decoding an access token.
    Returns the subject (the user_id) if valid, else None.
    """
    if token and token.startswith(TOKEN_PREFIX):
        subject = token[len(TOKEN_PREFIX):]
        return subject or None
    return None
