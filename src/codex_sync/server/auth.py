"""Shared-secret bearer authentication."""

import hmac

BEARER_PREFIX = "bearer "


def require_auth(secret: str | None, header: str | None) -> bool:
    """Check an ``Authorization`` header against the configured secret.

    An empty secret refuses every request, so a deployment that forgot to
    set one is closed rather than open.

    Args:
        secret: Configured ``SYNC_SECRET``.
        header: Raw ``Authorization`` header value.

    Returns:
        True if the token matches.
    """
    if not secret or not header:
        return False

    token = header.strip()
    if token.lower().startswith(BEARER_PREFIX):
        token = token[len(BEARER_PREFIX):].strip()

    expected = secret.encode("utf-8")
    received = token.encode("utf-8")
    if len(received) != len(expected):
        return False
    return hmac.compare_digest(received, expected)
