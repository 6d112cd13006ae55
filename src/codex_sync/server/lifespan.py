"""Service startup and shutdown.

``resolve_config`` merges every configuration source; ``open_services``
turns a ``Config`` into live handles (object store, fragment index,
GitHub client).  The Starlette lifespan in ``app.py`` calls both when the
app was not handed ready-made services.
"""

import logging
from dataclasses import dataclass
from typing import Any

from dotenv import find_dotenv, load_dotenv

from ..config import Config, load_config
from ..config_loader import discover_config_files, load_hierarchical_config
from ..config_schema import build_config, yaml_fallbacks
from ..core.github import GitHubClient
from ..core.index import FragmentIndex
from ..core.storage import ObjectStore, open_object_store

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Live handles shared by the request handlers via ``app.state``."""

    store: ObjectStore
    index: FragmentIndex
    github: GitHubClient | None = None

    def close(self) -> None:
        self.index.dispose()


def resolve_config(overrides: dict[str, Any] | None = None) -> Config:
    """Load configuration with unified precedence.

    CLI overrides > env vars (``.env`` loaded first) > YAML config > defaults.

    Raises:
        ValueError: If the merged configuration is invalid.
    """
    # .env first, so ${VAR} interpolation in YAML sees its values
    load_dotenv(find_dotenv(usecwd=True))

    fallbacks: dict[str, Any] | None = None
    sources: list[str] = []
    config_files = discover_config_files()
    if config_files:
        fallbacks = yaml_fallbacks(build_config(load_hierarchical_config()))
        sources.append(f"config file: {config_files[0]}")

    overrides = overrides or {}
    config = load_config(
        store=overrides.get("store"),
        database=overrides.get("database"),
        secret=overrides.get("secret"),
        debug=overrides.get("debug", False),
        yaml_fallbacks=fallbacks,
    )

    if overrides:
        sources.append("CLI arguments")
    sources.append("environment variables")
    logger.info("Configuration loaded from: %s", ", ".join(sources))
    return config


def open_services(config: Config) -> Services:
    """Open the store, the index (creating its table) and the GitHub client."""
    store = open_object_store(
        config.store_url,
        s3_endpoint_url=config.s3_endpoint_url,
        s3_region=config.s3_region,
    )
    index = FragmentIndex(config.database_url)
    index.create_all()

    github = None
    if config.github_configured:
        github = GitHubClient(
            token=config.github_token,
            repo=config.github_repo,
            api_url=config.github_api_url,
            max_retries=config.github_max_retries,
        )

    logger.info(
        "Services ready: store=%r index=%s github=%s",
        store,
        index.engine.url,
        config.github_repo if github else "not configured",
    )
    return Services(store=store, index=index, github=github)
