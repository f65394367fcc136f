"""Tests for settings, gateway selection and logging setup."""

import json
import logging
from pathlib import Path

import pytest
import structlog

from notestore.config import Settings
from notestore.gateway import GitHubGateway, LocalGateway, open_gateway
from notestore.gateway.github import API_URL
from notestore.log import configure_logging


class TestSettings:
    def test_defaults(self):
        settings = Settings.from_env({})
        assert settings.repo is None
        assert settings.api_url == API_URL
        assert settings.timeout == 30.0
        assert settings.drafts is None

    def test_from_env(self):
        settings = Settings.from_env({
            "NOTESTORE_REPO": "octo/notes",
            "NOTESTORE_TOKEN": "tok",
            "NOTESTORE_BRANCH": "drafts",
            "NOTESTORE_SUGGEST_URL": "https://suggest.example/api",
            "NOTESTORE_TIMEOUT": "5",
            "NOTESTORE_DRAFTS": "/tmp/drafts",
        })
        assert settings.repo == "octo/notes"
        assert settings.token == "tok"
        assert settings.branch == "drafts"
        assert settings.suggest_url == "https://suggest.example/api"
        assert settings.timeout == 5.0
        assert settings.drafts == Path("/tmp/drafts")

    def test_github_token_fallback(self):
        assert Settings.from_env({"GITHUB_TOKEN": "gh"}).token == "gh"
        assert Settings.from_env({"GITHUB_TOKEN": "gh", "NOTESTORE_TOKEN": "ns"}).token == "ns"

    def test_bad_timeout(self):
        with pytest.raises(ValueError, match="NOTESTORE_TIMEOUT"):
            Settings.from_env({"NOTESTORE_TIMEOUT": "soon"})

    def test_open_without_repo(self):
        with pytest.raises(ValueError):
            Settings().open_gateway()


class TestOpenGateway:
    def test_local_path(self, tmp_path):
        gateway = Settings(repo=str(tmp_path / "notes.git"), author="Ada").open_gateway()
        assert isinstance(gateway, LocalGateway)
        assert gateway.branch == "main"
        assert (tmp_path / "notes.git").exists()

    def test_existing_directory(self, tmp_path):
        LocalGateway(tmp_path / "plain", branch="trunk")
        gateway = open_gateway(tmp_path / "plain", branch="trunk")
        assert isinstance(gateway, LocalGateway)
        assert gateway.branch == "trunk"

    @pytest.mark.asyncio
    async def test_github(self):
        gateway = open_gateway("octo/notes", token="tok", api_url="https://ghe.example/api/v3/")
        assert isinstance(gateway, GitHubGateway)
        assert gateway._base == "https://ghe.example/api/v3/repos/octo/notes"
        assert gateway._headers["Authorization"] == "Bearer tok"
        await gateway.aclose()

    def test_bad_repo_name(self):
        with pytest.raises(ValueError):
            open_gateway("not a repo")


class TestLogging:
    def test_json_output(self, capsys):
        configure_logging(1, "json")
        structlog.get_logger("notestore.test").info("blob written", path="a.md")
        line = capsys.readouterr().err.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "blob written"
        assert record["path"] == "a.md"
        assert record["level"] == "info"

    def test_default_hides_info(self, capsys):
        configure_logging(0, "pretty")
        log = structlog.get_logger("notestore.test")
        log.info("quiet")
        log.warning("write conflict", path="a.md")
        err = capsys.readouterr().err
        assert "quiet" not in err
        assert "write conflict" in err

    def test_debug_level(self):
        configure_logging(2)
        assert logging.root.level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING
