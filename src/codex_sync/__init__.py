"""codex-sync: keep a git content repository, an object store and a
fragment index in agreement."""

__version__ = "0.3.0"
