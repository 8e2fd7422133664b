from pathlib import Path

from issuer.env_auth import (
    DEFAULT_TOKEN_ENV_VARS,
    EnvAuthConfig,
    EnvironmentAuthManager,
    create_env_auth_manager,
)


def test_env_auth_config_defaults():
    """Test EnvAuthConfig with defaults."""
    config = EnvAuthConfig()

    assert config.load_dotenv is True
    assert config.dotenv_path is None
    assert config.token_env_var is None


def test_environment_auth_manager_no_token():
    manager = EnvironmentAuthManager(EnvAuthConfig(load_dotenv=False))

    assert manager.get_token() is None
    assert "GITHUB_TOKEN" in manager.missing_token_message()


def test_environment_auth_manager_with_token(monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "test_token_123")

    manager = EnvironmentAuthManager(EnvAuthConfig(load_dotenv=False))

    assert manager.get_token() == "test_token_123"


def test_custom_variable_is_consulted_first(monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "generic")
    monkeypatch.setenv("MY_PAT", "specific")

    manager = create_env_auth_manager(EnvAuthConfig(load_dotenv=False, token_env_var="MY_PAT"))

    assert manager.candidate_vars()[0] == "MY_PAT"
    assert manager.get_token() == "specific"


def test_blank_values_are_skipped(monkeypatch):
    monkeypatch.setenv("ISSUER_API_TOKEN", "   ")
    monkeypatch.setenv("GH_TOKEN", " fallback ")

    assert create_env_auth_manager(EnvAuthConfig(load_dotenv=False)).get_token() == "fallback"


def test_candidate_vars_have_no_duplicates():
    manager = create_env_auth_manager(EnvAuthConfig(load_dotenv=False, token_env_var="GITHUB_TOKEN"))
    names = manager.candidate_vars()
    assert len(names) == len(set(names)) == len(DEFAULT_TOKEN_ENV_VARS)


def test_dotenv_file_is_loaded(tmp_path: Path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text("ISSUER_GITHUB_TOKEN=from_dotenv\n", encoding="utf-8")

    manager = create_env_auth_manager(EnvAuthConfig(dotenv_path=str(env_file)))

    assert manager.dotenv_loaded is True
    assert manager.get_token() == "from_dotenv"


def test_existing_environment_wins_over_dotenv(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("ISSUER_API_TOKEN", "from_env")
    (tmp_path / ".env").write_text("ISSUER_API_TOKEN=from_file\n", encoding="utf-8")

    manager = create_env_auth_manager()

    assert manager.dotenv_loaded is True
    assert manager.get_token() == "from_env"
