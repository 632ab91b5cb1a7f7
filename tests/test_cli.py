"""One-shot command line mode."""

import json
import logging

import httpx
import pytest

from fb_insights_mcp import server
from fb_insights_mcp.graph import GraphClient


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ("FB_APP_ID", "FB_APP_SECRET", "FB_ACCESS_TOKEN", "PORT", "LOG_LEVEL", "FB_API_VERSION"):
        monkeypatch.delenv(var, raising=False)
    package_logger = logging.getLogger("fb_insights_mcp")
    handlers, level, propagate = list(package_logger.handlers), package_logger.level, package_logger.propagate
    yield
    package_logger.handlers[:] = handlers
    package_logger.setLevel(level)
    package_logger.propagate = propagate


def test_version(capsys):
    assert server.main(["--version"]) == 0
    assert "1.0.0" in capsys.readouterr().out


def test_one_shot_success(monkeypatch, capsys):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"data": [{"id": "act_42", "name": "Padaria"}]})

    monkeypatch.setenv("FB_ACCESS_TOKEN", "token")
    monkeypatch.setattr(server, "GraphClient",
                        lambda config: GraphClient(config, transport=httpx.MockTransport(handler)))

    code = server.main(["facebook-list-ad-accounts"])

    assert code == 0
    printed = json.loads(capsys.readouterr().out)
    assert printed["isError"] is False
    assert "Padaria" in printed["content"][0]["text"]
    assert seen[0].url.path.endswith("/me/adaccounts")


def test_one_shot_missing_token(capsys):
    code = server.main(["facebook-account-info", '{"accountId": "act_1"}'])

    assert code == 1
    printed = json.loads(capsys.readouterr().out)
    assert printed["isError"] is True
    assert "FB_ACCESS_TOKEN" in printed["content"][0]["text"]


def test_one_shot_unknown_tool(capsys):
    assert server.main(["facebook-nothing", "{}"]) == 1
    assert "Ferramenta não encontrada" in capsys.readouterr().out


def test_one_shot_invalid_json(capsys):
    assert server.main(["facebook-account-info", "{accountId:"]) == 1
    printed = json.loads(capsys.readouterr().out)
    assert printed["isError"] is True


def test_invalid_port_exits_with_error(monkeypatch):
    monkeypatch.setenv("PORT", "not-a-port")
    assert server.main(["facebook-list-ad-accounts"]) == 1


def test_invalid_log_level_exits_with_error(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "chatty")
    assert server.main(["--http"]) == 1
