"""Tests for bootstrap wiring."""

import asyncio
import logging

import pytest
from unittest.mock import AsyncMock

from issuecache import create_cache_system, load_config, setup_logging
from issuecache.adapters.cache import CacheManager
from issuecache.adapters.config import EnvironmentConfigProvider
from issuecache.adapters.tracker import CallableTrackerAdapter
from issuecache.application.sync import SyncEngine
from issuecache.core.exceptions import IssueCacheError
from issuecache.core.ports.config_provider import AppConfig, CacheConfig, SyncConfig


@pytest.fixture
def config(tmp_path):
    return AppConfig(
        cache=CacheConfig(cache_dir=tmp_path / "cache", owner="acme", repo="app"),
        sync=SyncConfig(),
    )


class TestCreateCacheSystem:
    """Tests for create_cache_system."""

    def test_wraps_client(self, config):
        client = AsyncMock(return_value={"items": []})

        cache, engine = create_cache_system(config, client=client)

        assert isinstance(cache, CacheManager)
        assert isinstance(engine, SyncEngine)
        assert isinstance(engine.tracker, CallableTrackerAdapter)
        assert engine.cache is cache
        assert (config.cache.cache_dir / "stories").is_dir()

    def test_end_to_end_sync(self, config):
        client = AsyncMock(return_value={"items": [{
            "number": 42,
            "title": "Story 2-5-auth: Login",
            "labels": [{"name": "type:story"}, {"name": "story:2-5-auth"}],
            "updated_at": "2026-03-01T10:00:00Z",
        }]})
        cache, engine = create_cache_system(config, client=client)

        result = asyncio.run(engine.incremental_sync())

        assert result.updated == ["2-5-auth"]
        assert cache.read("2-5-auth").metadata.remote_id == 42
        query = client.await_args.args[1]["query"]
        assert query == "repo:acme/app label:type:story"

    def test_requires_tracker(self, config):
        with pytest.raises(IssueCacheError):
            create_cache_system(config)


class TestLoadConfig:
    """Tests for load_config."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch, tmp_path):
        for env_key in EnvironmentConfigProvider.ENV_MAPPING:
            monkeypatch.delenv(env_key, raising=False)
        monkeypatch.chdir(tmp_path)

    def test_invalid(self):
        with pytest.raises(IssueCacheError) as excinfo:
            load_config()

        assert "ISSUECACHE_OWNER" in str(excinfo.value)

    def test_valid(self):
        config = load_config({"owner": "acme", "repo": "app"})

        assert config.cache.owner == "acme"


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_verbose(self, monkeypatch):
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

        setup_logging(verbose=True)

        assert calls[0]["level"] == logging.DEBUG
        assert calls[0]["format"] == "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
