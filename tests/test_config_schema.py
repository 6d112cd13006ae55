"""Tests for codex_sync.config_schema: Pydantic config models."""

import pytest
from pydantic import ValidationError

from codex_sync.config import load_config
from codex_sync.config_schema import (
    GitHubConfig,
    LoggingConfig,
    ServerConfig,
    UnifiedConfig,
    build_config,
    yaml_fallbacks,
)


class TestSectionModels:
    """Field defaults and range validation per section."""

    def test_zero_config_is_valid(self):
        unified = UnifiedConfig()
        assert unified.server.max_parallel == 5
        assert unified.server.max_batch_size == 10000
        assert unified.github.max_retries == 3
        assert unified.storage.url is None
        assert unified.logging == LoggingConfig()

    @pytest.mark.parametrize("value", [0, 101])
    def test_max_parallel_range(self, value):
        with pytest.raises(ValidationError):
            ServerConfig(max_parallel=value)

    def test_max_retries_range(self):
        with pytest.raises(ValidationError):
            GitHubConfig(max_retries=11)

    def test_models_are_frozen(self):
        config = ServerConfig()
        with pytest.raises(ValidationError):
            config.max_parallel = 10


class TestBuildConfig:
    """build_config() turns a raw YAML dict into UnifiedConfig."""

    def test_full_document(self):
        unified = build_config(
            {
                "server": {"environment": "staging", "max_parallel": 8},
                "storage": {
                    "url": "s3://content",
                    "s3_endpoint_url": "https://r2.example.com",
                },
                "index": {"database": "postgresql://db/codex"},
                "github": {"repo": "acme/website", "token": "ghp_x"},
                "logging": {"level": "DEBUG", "format": "json"},
            }
        )
        assert unified.server.environment == "staging"
        assert unified.storage.url == "s3://content"
        assert unified.index.database == "postgresql://db/codex"
        assert unified.github.repo == "acme/website"
        assert unified.logging.format == "json"

    def test_empty_dict(self):
        assert build_config({}) == UnifiedConfig()

    def test_invalid_section_raises(self):
        with pytest.raises(ValidationError):
            build_config({"server": {"max_batch_size": "lots"}})


class TestYamlFallbacks:
    """yaml_fallbacks() flattens sections into Config field names."""

    def test_none_values_dropped(self):
        flat = yaml_fallbacks(UnifiedConfig())
        assert "store_url" not in flat
        assert "github_token" not in flat
        assert flat["max_parallel"] == 5

    def test_field_mapping(self):
        flat = yaml_fallbacks(
            build_config(
                {
                    "server": {"sync_secret": "s", "default_author": "Ops"},
                    "storage": {"url": "/srv", "s3_region": "eu"},
                    "index": {"database": "/db.sqlite"},
                    "github": {"api_url": "https://ghe.local/api/v3"},
                }
            )
        )
        assert flat["sync_secret"] == "s"
        assert flat["default_author"] == "Ops"
        assert flat["store_url"] == "/srv"
        assert flat["s3_region"] == "eu"
        assert flat["database_url"] == "/db.sqlite"
        assert flat["github_api_url"] == "https://ghe.local/api/v3"

    def test_feeds_load_config(self):
        unified = build_config(
            {
                "storage": {"url": "s3://yaml-bucket"},
                "server": {"max_batch_size": 50},
            }
        )
        config = load_config(yaml_fallbacks=yaml_fallbacks(unified))
        assert config.store_url == "s3://yaml-bucket"
        assert config.max_batch_size == 50
