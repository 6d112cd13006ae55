"""HTTP ingress for codex-sync (Starlette)."""

from .app import create_app
from .auth import require_auth
from .lifespan import Services, open_services, resolve_config

__all__ = [
    "Services",
    "create_app",
    "open_services",
    "require_auth",
    "resolve_config",
]
