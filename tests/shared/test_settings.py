import pytest

from salvager.settings import DEFAULT_MCP_URL, Settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in ("SALVAGER_TOKEN", "RESOURCE_GATEWAY_TOKEN", "TOKEN", "SALVAGER_MCP_URL", "SALVAGER_PORT"):
        monkeypatch.delenv(name, raising=False)


def test_defaults_are_unconfigured():
    settings = Settings()
    assert settings.mcp_url == DEFAULT_MCP_URL
    assert settings.api_token is None
    assert settings.is_configured is False


def test_token_from_legacy_variable(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("RESOURCE_GATEWAY_TOKEN", "legacy")
    settings = Settings()
    assert settings.api_token == "legacy"
    assert settings.is_configured is True


def test_prefixed_variables(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SALVAGER_TOKEN", "abc")
    monkeypatch.setenv("SALVAGER_PORT", "9000")
    settings = Settings()
    assert settings.api_token == "abc"
    assert settings.port == 9000


def test_token_is_not_shown_in_repr():
    settings = Settings(token="super-secret")
    assert "super-secret" not in repr(settings)
    assert settings.api_token == "super-secret"


def test_empty_token_is_unconfigured():
    assert Settings(token="").is_configured is False
