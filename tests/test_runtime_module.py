from __future__ import annotations

from types import SimpleNamespace

from issuer import runtime
from issuer.config import default_config
from issuer.errors import ConfigError, PlatformError, RunNotFoundError, UserAbort


def test_prepare_config_applies_cli_overrides() -> None:
    args = SimpleNamespace(config="cfg.yml", json_logs=True, log_level="DEBUG", auto_metadata=True)
    seen: list[str | None] = []

    def loader(path):
        seen.append(path)
        return default_config()

    cfg = runtime.prepare_config(args, loader=loader)

    assert seen == ["cfg.yml"]
    assert cfg.logging_json_enabled is True
    assert cfg.logging_level == "DEBUG"
    assert cfg.auto_versions is True
    assert cfg.auto_tags is True


def test_prepare_config_single_auto_flag() -> None:
    args = SimpleNamespace(auto_tags=True)
    cfg = runtime.prepare_config(args, loader=lambda path: default_config())
    assert cfg.auto_tags is True
    assert cfg.auto_versions is False


def test_execute_command_success() -> None:
    assert runtime.execute_command(lambda: None, "post") == runtime.EXIT_OK
    assert runtime.execute_command(lambda: 1, "post") == runtime.EXIT_FAILURE


def _raiser(exc: Exception):
    def handler():
        raise exc

    return handler


def test_execute_command_maps_errors(capsys) -> None:
    assert runtime.execute_command(_raiser(UserAbort("Aborted")), "post") == runtime.EXIT_ABORTED
    assert runtime.execute_command(_raiser(ConfigError("no repo")), "post") == runtime.EXIT_USAGE
    assert runtime.execute_command(_raiser(PlatformError("502")), "post") == runtime.EXIT_FAILURE
    assert runtime.execute_command(_raiser(RunNotFoundError("gone")), "runs") == runtime.EXIT_FAILURE
    err = capsys.readouterr().err
    assert "Aborted" in err
    assert "Error: no repo" in err
