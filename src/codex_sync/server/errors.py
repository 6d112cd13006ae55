"""JSON error responses for the HTTP layer."""

from starlette.responses import JSONResponse

UNAUTHORIZED = "Unauthorized"
INVALID_JSON = "Invalid JSON body"
GITHUB_NOT_CONFIGURED = "GITHUB_TOKEN and GITHUB_REPO must be configured"


def error_response(message: str, status_code: int) -> JSONResponse:
    """Build an ``{"error": message}`` response.

    Examples:
        >>> error_response("Unauthorized", 401).status_code
        401
    """
    return JSONResponse({"error": message}, status_code=status_code)


def unauthorized() -> JSONResponse:
    return error_response(UNAUTHORIZED, 401)
