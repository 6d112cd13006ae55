"""Tests for codex_sync.server.auth.require_auth()."""

import pytest

from codex_sync.server.auth import require_auth


@pytest.mark.parametrize(
    "header",
    ["Bearer s3cret", "bearer s3cret", "BEARER s3cret", "s3cret", "  Bearer s3cret  "],
)
def test_accepts_matching_token(header):
    assert require_auth("s3cret", header) is True


@pytest.mark.parametrize(
    "secret, header",
    [
        ("s3cret", None),
        ("s3cret", ""),
        ("s3cret", "Bearer "),
        ("s3cret", "Bearer s3cre"),
        ("s3cret", "Bearer s3cret!"),
        ("s3cret", "Bearer S3CRET"),
        ("s3cret", "Token s3cret"),
        ("", "Bearer "),
        ("", ""),
        (None, "Bearer anything"),
    ],
)
def test_rejects(secret, header):
    assert require_auth(secret, header) is False


def test_unicode_length_compared_in_bytes():
    # Same character count, different byte length
    assert require_auth("abc", "Bearer abé") is False
