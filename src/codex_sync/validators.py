"""
Input validation functions for codex-sync.

Provides validation for repository paths, store prefixes and other request
inputs so that malformed or hostile values are rejected before any store,
index or GitHub call is made.
"""

import re

_REPO_SLUG_RE = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")


# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Path")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def validate_relative_path(
    path: str, field_name: str = "Path"
) -> tuple[bool, str]:
    """
    Validate a slash-separated relative path.

    Args:
        path: The path to validate
        field_name: Name used in the error message

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.

    Validation rules:
        - Cannot be empty or whitespace-only
        - Cannot be absolute or contain backslashes
        - Cannot contain '..' segments (path traversal protection)
        - Cannot have empty path segments (e.g., 'a//b')
    """
    if not path or not path.strip():
        return (False, format_validation_error(field_name, "cannot be empty"))

    if path.startswith("/") or "\\" in path:
        return (
            False,
            format_validation_error(field_name, "must be a relative POSIX path"),
        )

    segments = path.rstrip("/").split("/")
    if ".." in segments or "." in segments:
        return (
            False,
            format_validation_error(field_name, "cannot contain '.' or '..' segments"),
        )

    if "" in segments:
        return (
            False,
            format_validation_error(field_name, "cannot have empty path segments"),
        )

    return (True, "")


def validate_repo_slug(slug: str) -> tuple[bool, str]:
    """
    Validate a GitHub repository identifier in ``owner/repo`` form.

    Returns:
        Tuple of (is_valid, error_message).
    """
    if not slug or not slug.strip():
        return (
            False,
            format_validation_error("Repository", "cannot be empty"),
        )
    if not _REPO_SLUG_RE.match(slug.strip()):
        return (
            False,
            format_validation_error("Repository", "must be in 'owner/repo' form"),
        )
    return (True, "")
