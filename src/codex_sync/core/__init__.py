"""Collaborator adapters: object store, fragment index, GitHub client."""

from .async_utils import run_sync
from .github import GitHubClient, GitHubError
from .index import FragmentIndex, FragmentIndexRow
from .storage import ObjectStore, ObjectStoreError, open_object_store

__all__ = [
    "FragmentIndex",
    "FragmentIndexRow",
    "GitHubClient",
    "GitHubError",
    "ObjectStore",
    "ObjectStoreError",
    "open_object_store",
    "run_sync",
]
