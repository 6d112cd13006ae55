"""
Hierarchical YAML configuration loader for codex-sync.

Finds config files by convention, supports ``!include`` and ``${VAR}``
interpolation, and merges files so that the project-level file wins.

Usage:
    from codex_sync.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CODEX_SYNC_CONFIG"
PROJECT_CONFIG_DIR = ".codex_sync"

# ${VAR} or ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


# ---------------------------------------------------------------------------
# Env var interpolation
# ---------------------------------------------------------------------------


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` in *value*.

    Unset or empty variables expand to their default, or to ``""`` when no
    default is given.
    """

    def _replace(match: re.Match) -> str:
        env_val = os.environ.get(match.group(1))
        if env_val:
            return env_val
        return match.group(2) or ""

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _interpolate_recursive(obj: Any) -> Any:
    """Apply ``interpolate_env_vars`` to every string in a nested structure."""
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _interpolate_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_interpolate_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# YAML !include support
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """``SafeLoader`` subclass understanding ``!include path``.

    A subclass keeps the global ``yaml.SafeLoader`` untouched.
    """


def _include_constructor(loader: ConfigLoader, node: yaml.ScalarNode) -> Any:
    target = Path(loader.construct_scalar(node))
    if not target.is_absolute():
        target = Path(loader.name).resolve().parent / target
    target = target.resolve()

    stack: list[Path] = getattr(loader, "_include_stack", [])
    if target in stack:
        chain = " -> ".join(str(p) for p in [*stack, target])
        raise ValueError(f"Circular include detected: {chain}")
    if not target.exists():
        raise FileNotFoundError(
            f"Include file not found: {target} (referenced from {Path(loader.name).resolve()})"
        )
    return _load_yaml_with_includes(target, _include_stack=[*stack, target])


ConfigLoader.add_constructor("!include", _include_constructor)


def _load_yaml_with_includes(
    path: Path,
    *,
    _include_stack: list[Path] | None = None,
) -> Any:
    """Load one YAML file through ``ConfigLoader``."""
    path = path.resolve()
    with open(path, "r", encoding="utf-8") as fh:
        loader = ConfigLoader(fh)
        loader._include_stack = _include_stack or [path]  # type: ignore[attr-defined]
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def discover_config_files() -> list[Path]:
    """Return existing config files, highest precedence first.

    Search order:
        1. ``CODEX_SYNC_CONFIG`` env var (explicit single path)
        2. ``.codex_sync/config.yml`` in CWD (project-level)
        3. ``~/.config/codex_sync/config.yml`` (XDG global)
    """
    candidates: list[Path] = []

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        candidates.append(Path(env_path).expanduser().resolve())

    candidates.append(Path.cwd() / PROJECT_CONFIG_DIR / "config.yml")
    candidates.append(Path.home() / ".config" / "codex_sync" / "config.yml")

    return [p for p in candidates if p.exists()]


_STARTER_CONFIG = """\
# codex-sync configuration
#
# Every value can also be set through environment variables
# (CODEX_SYNC_STORE, CODEX_SYNC_DATABASE, SYNC_SECRET, GITHUB_TOKEN, ...).
# ${VAR} and ${VAR:-default} are expanded from the environment.
#
# server:
#   environment: production
#   sync_secret: ${SYNC_SECRET}
#   max_parallel: 5
#   max_batch_size: 10000
#
# storage:
#   url: s3://content-bucket
#   s3_endpoint_url: https://<account>.r2.cloudflarestorage.com
#
# index:
#   database: .codex_sync/index.db
#
# github:
#   repo: owner/repo
#   token: ${GITHUB_TOKEN}
#
# logging:
#   level: INFO
#   file: null
"""


def ensure_config(target: Path | None = None) -> Path:
    """Return the active config file, writing a starter file if none exists.

    Args:
        target: Path to create when no config exists. Defaults to
            ``CWD / .codex_sync / config.yml``.

    Returns:
        Path to the existing or newly created config file.
    """
    existing = discover_config_files()
    if existing:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0]

    config_path = target or Path.cwd() / PROJECT_CONFIG_DIR / "config.yml"
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", config_path)
    return config_path


# ---------------------------------------------------------------------------
# Hierarchical merge
# ---------------------------------------------------------------------------


def load_hierarchical_config() -> dict[str, Any]:
    """Load and merge every discovered config file.

    Files are applied from lowest to highest precedence; top-level keys of a
    later file replace (not deep-merge) earlier ones. Env var interpolation
    runs after the merge. Returns ``{}`` when no file exists.
    """
    paths = discover_config_files()
    if not paths:
        logger.debug("No config files found, using zero-config defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        try:
            data = _load_yaml_with_includes(path)
        except Exception:
            logger.exception("Failed to load config file %s", path)
            raise

        if isinstance(data, dict):
            merged.update(data)
        elif data is not None:
            logger.warning(
                "Config file %s has non-dict root (%s), skipping",
                path,
                type(data).__name__,
            )

    return _interpolate_recursive(merged)
