"""Shared pytest fixtures for codex-sync tests."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from codex_sync.config import Config
from codex_sync.core.github import GitHubClient
from codex_sync.core.index import FragmentIndex
from codex_sync.core.storage import FilesystemObjectStore

# Variables read by load_config(); cleared so a developer's shell or CI
# environment never leaks into a test.
_CONFIG_ENV_VARS = (
    "ENVIRONMENT",
    "SYNC_SECRET",
    "GITHUB_TOKEN",
    "GITHUB_REPO",
    "GITHUB_API_URL",
    "GITHUB_MAX_RETRIES",
    "CODEX_SYNC_STORE",
    "CODEX_SYNC_S3_ENDPOINT_URL",
    "CODEX_SYNC_S3_REGION",
    "CODEX_SYNC_DATABASE",
    "CODEX_SYNC_MAX_PARALLEL",
    "CODEX_SYNC_MAX_BATCH_SIZE",
    "CODEX_SYNC_DEFAULT_AUTHOR",
    "CODEX_SYNC_DEBUG",
    "CODEX_SYNC_CONFIG",
    "LOG_LEVEL",
    "LOG_FILE",
)

SECRET = "test-secret-0123456789"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def store(tmp_path: Path) -> FilesystemObjectStore:
    """Empty directory-backed object store."""
    return FilesystemObjectStore(tmp_path / "bucket")


@pytest.fixture
def index(tmp_path: Path):
    """Fragment index on a fresh SQLite file."""
    idx = FragmentIndex(str(tmp_path / "index.db"))
    idx.create_all()
    yield idx
    idx.dispose()


@pytest.fixture
def mock_config(tmp_path: Path) -> Config:
    """Config for a local store with GitHub configured."""
    return Config(
        store_url=str(tmp_path / "bucket"),
        sync_secret=SECRET,
        environment="test",
        database_url=str(tmp_path / "index.db"),
        github_token="ghp_test",
        github_repo="acme/website",
    )


@pytest.fixture
def fake_github():
    """MagicMock GitHubClient backed by an in-memory repository.

    ``fake_github.files`` maps repository paths to bytes at the head commit.
    Created blobs are recorded in ``fake_github.blobs``.
    """
    github = MagicMock(spec=GitHubClient)
    github.files = {}
    github.blobs = {}

    github.get_default_branch.return_value = "main"
    github.get_branch_sha.return_value = "head0000sha"
    github.get_commit_tree.return_value = "basetreesha"

    def _get_file(path, ref):
        return github.files.get(path)

    def _create_blob(content):
        sha = f"blob{len(github.blobs)}"
        github.blobs[sha] = content
        return sha

    github.get_file.side_effect = _get_file
    github.create_blob.side_effect = _create_blob
    github.create_tree.return_value = "newtreesha"
    github.create_commit.return_value = "newcommitsha"
    github.create_pull_request.return_value = (
        "https://github.com/acme/website/pull/42"
    )
    return github


@pytest.fixture
def mock_response():
    """Factory fixture for ``requests.Response`` mocks."""

    def _create(status_code=200, json_data=None, text=""):
        response = MagicMock()
        response.status_code = status_code
        response.ok = status_code < 400
        response.json.return_value = json_data
        response.text = text
        response.content = b"{}" if json_data is not None else text.encode()
        return response

    return _create
