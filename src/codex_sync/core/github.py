"""GitHub REST / Git-data API client used by reverse export.

Only the handful of endpoints the exporter needs are wrapped.  Every method
returns plain Python values (shas, bytes, URLs) and raises ``GitHubError``
on failure.
"""

import base64
import logging
import threading
import time
from typing import Any, Callable
from urllib.parse import quote

import requests

from .. import __version__

logger = logging.getLogger(__name__)

GITHUB_MEDIA_TYPE = "application/vnd.github+json"
API_VERSION = "2022-11-28"


class GitHubError(RuntimeError):
    """A GitHub API call failed.

    Attributes:
        status_code: HTTP status, or ``None`` for transport errors.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class GitHubClient:
    """Thin ``requests`` wrapper for one repository.

    Args:
        token: Bearer token with ``contents`` and ``pull_requests`` write access.
        repo: Repository in ``owner/repo`` form.
        api_url: API base URL (GitHub Enterprise installs differ).
        max_retries: Retries for idempotent calls on 5xx / transport errors.
        backoff: Base delay in seconds, doubled per attempt.
        sleep: Sleep function (injectable for tests).
    """

    def __init__(
        self,
        token: str,
        repo: str,
        api_url: str = "https://api.github.com",
        max_retries: int = 3,
        backoff: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.token = token
        self.repo = repo
        self.base_url = f"{api_url.rstrip('/')}/repos/{repo}"
        self.max_retries = max_retries
        self.backoff = backoff
        self._sleep = sleep
        self._thread_local = threading.local()

    @property
    def session(self) -> requests.Session:
        """The current thread's session."""
        return self._get_session()

    def _get_session(self) -> requests.Session:
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "Authorization": f"Bearer {self.token}",
                "Accept": GITHUB_MEDIA_TYPE,
                "X-GitHub-Api-Version": API_VERSION,
                "User-Agent": f"codex-sync/{__version__}",
            }
        )
        return session

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict | None = None,
        params: dict | None = None,
        retry: bool = False,
        allow_404: bool = False,
    ) -> Any:
        """Make a request against the repository API.

        Args:
            retry: Retry on 5xx and transport errors.  Only for calls that
                are safe to repeat.
            allow_404: Return ``None`` instead of raising on 404.

        Returns:
            Decoded JSON body, ``None`` for 404 (when allowed) or 204.
        """
        url = f"{self.base_url}{path}"
        attempts = self.max_retries + 1 if retry else 1

        for attempt in range(attempts):
            last_attempt = attempt == attempts - 1
            try:
                response = self._get_session().request(
                    method, url, json=json, params=params, timeout=(10, 60)
                )
            except (requests.ConnectionError, requests.Timeout) as e:
                if last_attempt:
                    raise GitHubError(
                        f"GitHub API unreachable: {method} {path}: {e}"
                    ) from e
                self._backoff(attempt, method, path, str(e))
                continue

            if response.status_code >= 500 and not last_attempt:
                self._backoff(
                    attempt, method, path, f"HTTP {response.status_code}"
                )
                continue
            break

        if response.status_code == 404 and allow_404:
            return None
        if response.status_code >= 400:
            raise GitHubError(
                f"GitHub API error: {method} {path} -> {response.status_code}: "
                f"{self._error_message(response)}",
                status_code=response.status_code,
            )
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def _backoff(self, attempt: int, method: str, path: str, reason: str) -> None:
        delay = self.backoff * (2**attempt)
        logger.warning(
            "GitHub %s %s failed (%s), retry %d/%d in %.1fs",
            method,
            path,
            reason,
            attempt + 1,
            self.max_retries,
            delay,
        )
        self._sleep(delay)

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text[:200]
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
        return response.text[:200]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_default_branch(self) -> str:
        data = self._request("GET", "", retry=True)
        return data["default_branch"]

    def get_branch_sha(self, branch: str) -> str:
        """Return the commit sha the branch ref points at."""
        data = self._request("GET", f"/git/ref/heads/{branch}", retry=True)
        return data["object"]["sha"]

    def get_commit_tree(self, commit_sha: str) -> str:
        """Return the tree sha of a commit."""
        data = self._request("GET", f"/git/commits/{commit_sha}", retry=True)
        return data["tree"]["sha"]

    def get_file(self, path: str, ref: str) -> bytes | None:
        """Return the raw bytes of *path* at *ref*, or ``None`` if absent.

        Files over the contents API size limit come back without inline
        content; they are fetched through the blob API instead.
        """
        data = self._request(
            "GET",
            f"/contents/{quote(path, safe='/')}",
            params={"ref": ref},
            retry=True,
            allow_404=True,
        )
        if data is None:
            return None
        if isinstance(data, list) or data.get("type") != "file":
            # A directory or submodule sits at this path
            return None
        if data.get("encoding") == "base64" and data.get("content") is not None:
            return base64.b64decode(data["content"])
        return self.get_blob(data["sha"])

    def get_blob(self, sha: str) -> bytes:
        data = self._request("GET", f"/git/blobs/{sha}", retry=True)
        if data.get("encoding") == "base64":
            return base64.b64decode(data["content"])
        return data["content"].encode("utf-8")

    # ------------------------------------------------------------------
    # Content-addressed writes (safe to retry)
    # ------------------------------------------------------------------

    def create_blob(self, content: bytes) -> str:
        data = self._request(
            "POST",
            "/git/blobs",
            json={
                "content": base64.b64encode(content).decode("ascii"),
                "encoding": "base64",
            },
            retry=True,
        )
        return data["sha"]

    def create_tree(self, base_tree: str, entries: list[dict[str, str]]) -> str:
        data = self._request(
            "POST",
            "/git/trees",
            json={"base_tree": base_tree, "tree": entries},
            retry=True,
        )
        return data["sha"]

    def create_commit(self, message: str, tree: str, parents: list[str]) -> str:
        data = self._request(
            "POST",
            "/git/commits",
            json={"message": message, "tree": tree, "parents": parents},
            retry=True,
        )
        return data["sha"]

    # ------------------------------------------------------------------
    # Visible writes (never retried)
    # ------------------------------------------------------------------

    def create_branch(self, branch: str, sha: str) -> None:
        self._request(
            "POST",
            "/git/refs",
            json={"ref": f"refs/heads/{branch}", "sha": sha},
        )

    def delete_branch(self, branch: str) -> None:
        self._request("DELETE", f"/git/refs/heads/{branch}", allow_404=True)

    def create_pull_request(
        self, title: str, body: str, head: str, base: str
    ) -> str:
        """Open a pull request and return its HTML URL."""
        data = self._request(
            "POST",
            "/pulls",
            json={"title": title, "body": body, "head": head, "base": base},
        )
        return data["html_url"]
