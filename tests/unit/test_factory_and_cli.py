"""Tests for adapter selection and the CLI."""

from __future__ import annotations

import httpx
from typer.testing import CliRunner

from cachewise.cli.main import app
from cachewise.core.config import AdapterConfig, AppSettings, CachingConfig
from cachewise.inference.factory import create_invocation_adapter
from cachewise.inference.local import LocalAdapter
from cachewise.inference.remote import RemoteAdapter

runner = CliRunner()


class TestCreateInvocationAdapter:
    def test_local_by_default(self) -> None:
        adapter = create_invocation_adapter(AppSettings())
        assert isinstance(adapter, LocalAdapter)
        assert adapter.model == AppSettings().llm.model

    def test_remote_mode(self) -> None:
        settings = AppSettings(adapter=AdapterConfig(mode="remote", remote_url="http://tool.test/api/invoke"))
        adapter = create_invocation_adapter(settings)
        assert isinstance(adapter, RemoteAdapter)
        assert adapter.url == "http://tool.test/api/invoke"

    def test_caching_settings_reach_local_adapter(self) -> None:
        settings = AppSettings(caching=CachingConfig(enabled=False, ttl_type="long"))
        adapter = create_invocation_adapter(settings)
        assert isinstance(adapter, LocalAdapter)
        assert adapter._cache_control is False
        assert adapter._ttl_type == "long"


class TestCli:
    def test_compose_shows_three_blocks(self) -> None:
        result = runner.invoke(app, ["compose", "Where is my order?", "--order-context", '{"id": 123}'])
        assert result.exit_code == 0
        assert "Template fingerprint" in result.output
        assert "[0] system" in result.output
        assert "[2] user" in result.output
        assert '"id":123' in result.output

    def test_compose_rejects_bad_json(self) -> None:
        result = runner.invoke(app, ["compose", "hi", "--order-context", "{not json"])
        assert result.exit_code != 0

    def test_stats_unreachable(self, monkeypatch) -> None:
        def _fail(*args, **kwargs):
            raise httpx.ConnectError("refused")

        monkeypatch.setattr(httpx, "get", _fail)
        result = runner.invoke(app, ["stats", "--url", "http://nowhere.test"])
        assert result.exit_code == 1
        assert "Could not read stats" in result.output
