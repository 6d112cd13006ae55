"""Service configuration for codex-sync.

Reads settings from CLI args, environment variables, .env files, and YAML
config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    ENVIRONMENT: Deployment name reported by /health (default: development)
    SYNC_SECRET: Shared bearer secret for /sync and /export
    CODEX_SYNC_STORE: Object store location, ``s3://bucket[/prefix]`` or a
        directory path / ``file://`` URL (required)
    CODEX_SYNC_S3_ENDPOINT_URL: S3-compatible endpoint (e.g. R2) (optional)
    CODEX_SYNC_S3_REGION: S3 region (optional, default: auto)
    CODEX_SYNC_DATABASE: SQLAlchemy URL or SQLite path for the fragment index
        (optional, default: .codex_sync/index.db)
    CODEX_SYNC_MAX_PARALLEL: Concurrent entries per /sync call (optional, default: 5)
    CODEX_SYNC_MAX_BATCH_SIZE: Max entries per /sync call (optional, default: 10000)
    CODEX_SYNC_DEFAULT_AUTHOR: Author for new rows without one (optional)
    GITHUB_TOKEN: Token for the GitHub API (required for /export)
    GITHUB_REPO: Target repository as ``owner/repo`` (required for /export)
    GITHUB_API_URL: API base URL (optional, default: https://api.github.com)
    GITHUB_MAX_RETRIES: Retries for idempotent GitHub calls (optional, default: 3)
"""

import logging
import os
from dataclasses import dataclass
from urllib.parse import urlparse

from .validators import validate_repo_slug

logger = logging.getLogger(__name__)

DEFAULT_DATABASE = ".codex_sync/index.db"
DEFAULT_GITHUB_API_URL = "https://api.github.com"
DEFAULT_AUTHOR = "Technical Team"


@dataclass
class Config:
    store_url: str
    sync_secret: str = ""
    environment: str = "development"
    s3_endpoint_url: str | None = None
    s3_region: str = "auto"
    database_url: str = DEFAULT_DATABASE
    github_token: str | None = None
    github_repo: str | None = None
    github_api_url: str = DEFAULT_GITHUB_API_URL
    github_max_retries: int = 3
    max_parallel: int = 5
    max_batch_size: int = 10000
    default_author: str = DEFAULT_AUTHOR
    debug: bool = False

    @property
    def github_configured(self) -> bool:
        """True when both a token and a target repository are set."""
        return bool(self.github_token and self.github_repo)


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the store location, repository slug, or API URL
            is malformed.
    """
    config.store_url = config.store_url.strip()
    if not config.store_url:
        raise ValueError(
            "Object store cannot be empty. Set CODEX_SYNC_STORE environment variable."
        )

    if config.store_url.startswith("s3://"):
        if not urlparse(config.store_url).netloc:
            raise ValueError(
                f"Invalid object store '{config.store_url}': s3:// URL must name a bucket"
            )

    if config.github_repo:
        valid, reason = validate_repo_slug(config.github_repo)
        if not valid:
            raise ValueError(
                f"Invalid GITHUB_REPO '{config.github_repo}': {reason}"
            )

    config.github_api_url = config.github_api_url.strip()
    if not config.github_api_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid GitHub API URL '{config.github_api_url}': must start with http:// or https://"
        )
    config.github_api_url = config.github_api_url.removesuffix("/")

    if not config.sync_secret:
        logger.warning(
            "SYNC_SECRET is not set; every /sync and /export request will be refused."
        )

    if (config.github_token is None) != (config.github_repo is None):
        logger.warning(
            "Only one of GITHUB_TOKEN / GITHUB_REPO is set; /export is disabled."
        )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _resolve_int(
    env_key: str,
    fallback: object,
    default: int,
    low: int,
    high: int,
) -> int:
    """Resolve an integer setting: env > YAML fallback > default, range-checked."""
    raw = os.getenv(env_key)
    if raw is None:
        if fallback is None:
            return default
        raw = str(fallback)
        source = "config file"
    else:
        source = env_key
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(
            f"Invalid {source} value '{raw}' for {env_key}: must be a number between {low} and {high}"
        ) from None
    if not (low <= value <= high):
        raise ValueError(
            f"Invalid {source} value '{raw}' for {env_key}: must be a number between {low} and {high}"
        )
    return value


def load_config(
    store: str | None = None,
    database: str | None = None,
    secret: str | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        store: Override object store location.
        database: Override index database location.
        secret: Override the shared bearer secret.
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Flat dict of values from the YAML config file,
            keyed by ``Config`` field name (see
            ``config_schema.yaml_fallbacks``).

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If the object store is missing after checking all
            sources, or any value is invalid.
    """
    fb = yaml_fallbacks or {}

    store_url = store or os.getenv("CODEX_SYNC_STORE") or fb.get("store_url")
    if not store_url:
        raise ValueError(
            "Object store not found. Set CODEX_SYNC_STORE environment variable, "
            "pass --store CLI argument, or add 'storage.url' to config.yml."
        )

    def _pick(env_key: str, fb_key: str, default=None):
        return os.getenv(env_key) or fb.get(fb_key) or default

    env_debug = _get_bool_env("CODEX_SYNC_DEBUG")
    if debug:
        final_debug = True
    elif env_debug is not None:
        final_debug = env_debug
    else:
        final_debug = bool(fb.get("debug", False))

    config = Config(
        store_url=store_url,
        sync_secret=(secret or _pick("SYNC_SECRET", "sync_secret", "")).strip(),
        environment=_pick("ENVIRONMENT", "environment", "development"),
        s3_endpoint_url=_pick("CODEX_SYNC_S3_ENDPOINT_URL", "s3_endpoint_url"),
        s3_region=_pick("CODEX_SYNC_S3_REGION", "s3_region", "auto"),
        database_url=database
        or _pick("CODEX_SYNC_DATABASE", "database_url", DEFAULT_DATABASE),
        github_token=_pick("GITHUB_TOKEN", "github_token"),
        github_repo=_pick("GITHUB_REPO", "github_repo"),
        github_api_url=_pick(
            "GITHUB_API_URL", "github_api_url", DEFAULT_GITHUB_API_URL
        ),
        github_max_retries=_resolve_int(
            "GITHUB_MAX_RETRIES", fb.get("github_max_retries"), 3, 0, 10
        ),
        max_parallel=_resolve_int(
            "CODEX_SYNC_MAX_PARALLEL", fb.get("max_parallel"), 5, 1, 100
        ),
        max_batch_size=_resolve_int(
            "CODEX_SYNC_MAX_BATCH_SIZE",
            fb.get("max_batch_size"),
            10000,
            1,
            10000,
        ),
        default_author=_pick(
            "CODEX_SYNC_DEFAULT_AUTHOR", "default_author", DEFAULT_AUTHOR
        ),
        debug=final_debug,
    )

    validate_config(config)

    return config
