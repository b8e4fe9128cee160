from __future__ import annotations

import json
from pathlib import Path

import pytest

from cognis import cli
from cognis.errors import ExitCode
from cognis.terminal import MockConfiguration, MockSession


@pytest.fixture
def fast_config(tmp_path: Path) -> Path:
    path = tmp_path / "config.toml"
    path.write_text(
        'default_backend = "mock"\nmock_connect_delay = 0\nmock_silent_delay = 0\n',
        encoding="utf-8",
    )
    return path


def _args(config: Path, tmp_path: Path, *rest: str) -> list[str]:
    return ["--config", str(config), "--log-file", str(tmp_path / "cognis.log"), *rest]


def test_cli_help_lists_subcommands() -> None:
    help_text = cli.build_parser().format_help()

    for flag in ("--backend", "--shell", "--config", "--log-level", "--log-file", "exec", "env", "send"):
        assert flag in help_text


def test_parse_args_reads_send_options() -> None:
    namespace = cli.parse_args(["--backend", "mock", "send", "help", "--wait", "0.5"])

    assert namespace.backend == "mock"
    assert namespace.command == "send"
    assert namespace.text == "help"
    assert namespace.wait == 0.5


def test_missing_subcommand_is_invalid_args() -> None:
    assert cli.main([]) == 2


def test_invalid_log_level_is_rejected(capsys) -> None:
    code = cli.main(["--log-level", "chatty", "env"])

    assert code == 2
    assert "--log-level must be one of" in capsys.readouterr().err


def test_invalid_wait_is_rejected() -> None:
    assert cli.main(["send", "ls", "--wait", "forever"]) == 2


def test_exec_prints_silent_command_result(fast_config: Path, tmp_path: Path, capsys) -> None:
    code = cli.main(_args(fast_config, tmp_path, "exec", "df", "-h"))

    payload = json.loads(capsys.readouterr().out)
    assert code == 0
    assert payload["command"] == "df -h"
    assert payload["status"] == "success"


def test_exec_keeps_argument_quoting(fast_config: Path, tmp_path: Path, capsys) -> None:
    code = cli.main(_args(fast_config, tmp_path, "exec", "--", "printf", "[%s]", "a b"))

    payload = json.loads(capsys.readouterr().out)
    assert code == 0
    assert payload["command"] == "printf '[%s]' 'a b'"


def test_exec_single_argument_is_a_shell_command_line() -> None:
    namespace = cli.parse_args(["exec", "ls -la | wc -l"])

    assert namespace.silent_command == "ls -la | wc -l"


def test_exec_passes_option_like_words_to_the_command() -> None:
    namespace = cli.parse_args(["exec", "grep", "-r", "--count", "needle"])

    assert namespace.silent_command == "grep -r --count needle"


def test_exec_without_command_is_invalid_args(capsys) -> None:
    assert cli.main(["exec"]) == 2
    assert "exec requires a command" in capsys.readouterr().err


def test_env_prints_sorted_environment(fast_config: Path, tmp_path: Path, capsys) -> None:
    code = cli.main(_args(fast_config, tmp_path, "env"))

    lines = capsys.readouterr().out.splitlines()
    assert code == 0
    assert "TERM=xterm-256color" in lines
    assert lines == sorted(lines)


def test_send_prints_interactive_output(fast_config: Path, tmp_path: Path, capsys) -> None:
    code = cli.main(_args(fast_config, tmp_path, "send", "help", "--wait", "0.3"))

    out = capsys.readouterr().out
    assert code == 0
    assert "Available commands: help, clear, date, diagnose" in out
    assert "Welcome" not in out


def test_handled_error_is_reported_with_exit_code(fast_config: Path, tmp_path: Path, capsys) -> None:
    def opener(_namespace, _settings) -> MockSession:
        return MockSession(MockConfiguration(connect_delay=0, refuse_connection=True))

    code = cli.main(_args(fast_config, tmp_path, "env"), session_opener=opener)

    err = capsys.readouterr().err
    assert code == int(ExitCode.CONNECTION_ERROR)
    assert "Error: Connection refused. Next step: Ensure the remote service is running" in err


def test_invalid_shell_is_a_configuration_error(tmp_path: Path, capsys) -> None:
    config = tmp_path / "config.toml"
    config.write_text('default_backend = "local"\n', encoding="utf-8")

    code = cli.main(_args(config, tmp_path, "--shell", str(tmp_path / "no-shell"), "env"))

    assert code == int(ExitCode.CONFIG_ERROR)
    assert "Shell not found or not executable" in capsys.readouterr().err


def test_unhandled_error_points_to_log_file(fast_config: Path, tmp_path: Path, capsys) -> None:
    def opener(_namespace, _settings) -> MockSession:
        raise RuntimeError("boom")

    code = cli.main(_args(fast_config, tmp_path, "env"), session_opener=opener)

    err = capsys.readouterr().err
    assert code == int(ExitCode.RUNTIME_ERROR)
    assert "Unexpected runtime failure" in err
    assert str(tmp_path / "cognis.log") in err
