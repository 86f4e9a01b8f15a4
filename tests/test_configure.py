"""Interactive .env bootstrap."""

from __future__ import annotations

import configure

ENV_KEYS = ("MAIL_SESSION_TOKEN", "MAIL_ACCOUNT_ID", "TIMEZONE", "MAIL_MAX_ATTEMPTS")


def _answers(monkeypatch, *values):
    replies = iter(values)
    monkeypatch.setattr("builtins.input", lambda prompt="": next(replies))


def test_create_env_file_prompts_for_each_key(tmp_path, monkeypatch) -> None:
    example = tmp_path / ".env.example"
    example.write_text("# comment\nMAIL_SESSION_TOKEN=placeholder\nTIMEZONE=UTC\nMAIL_ACCOUNT_ID=\n")
    env_path = tmp_path / ".env"
    # Token, an invalid timezone, an out-of-range one, a valid one, then the account id
    _answers(monkeypatch, "secret", "Mars/Olympus", "UTC+30:00", "UTC+08:00", "42")

    assert configure.create_env_file(str(example), str(env_path)) is True

    assert env_path.read_text().splitlines() == [
        "# comment",
        "MAIL_SESSION_TOKEN=secret",
        "TIMEZONE=UTC+08:00",
        "MAIL_ACCOUNT_ID=42",
    ]


def test_create_env_file_keeps_defaults_on_empty_answers(tmp_path, monkeypatch) -> None:
    example = tmp_path / ".env.example"
    example.write_text("TIMEZONE=UTC-05:30\nLOG_LEVEL=INFO\n")
    env_path = tmp_path / ".env"
    _answers(monkeypatch, "", "")

    configure.create_env_file(str(example), str(env_path))

    assert env_path.read_text() == "TIMEZONE=UTC-05:30\nLOG_LEVEL=INFO\n"


def test_create_env_file_without_example(tmp_path) -> None:
    assert configure.create_env_file(str(tmp_path / "missing"), str(tmp_path / ".env")) is False


def test_existing_env_file_is_kept_unless_confirmed(tmp_path, monkeypatch) -> None:
    example = tmp_path / ".env.example"
    example.write_text("TIMEZONE=UTC\n")
    env_path = tmp_path / ".env"
    env_path.write_text("TIMEZONE=UTC+01:00\n")
    _answers(monkeypatch, "n")

    assert configure.create_env_file(str(example), str(env_path)) is True
    assert env_path.read_text() == "TIMEZONE=UTC+01:00\n"


def test_configuration_check(tmp_path, monkeypatch, capsys) -> None:
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    env_path = tmp_path / ".env"
    env_path.write_text("TIMEZONE=UTC+08:00\nMAIL_MAX_ATTEMPTS=3\n")

    assert configure.test_configuration(str(env_path)) is True

    out = capsys.readouterr().out
    assert "MAIL_SESSION_TOKEN not configured" in out
    assert "Timezone for naive timestamps: UTC+08:00" in out
    assert "3 attempts" in out


def test_configuration_check_fails_on_bad_timezone(tmp_path, monkeypatch) -> None:
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    env_path = tmp_path / ".env"
    env_path.write_text("TIMEZONE=UTC+99:00\n")

    assert configure.test_configuration(str(env_path)) is False


def test_setup_banner_names_the_tool(monkeypatch, capsys) -> None:
    _answers(monkeypatch, "n")

    configure.main()

    out = capsys.readouterr().out
    assert f"{configure.PROJECT_NAME} | mailbox verification code poller setup" in out
    assert "-" * configure.BANNER_WIDTH in out
    assert "Setup cancelled." in out


def test_steps_are_numbered_out_of_total(capsys) -> None:
    configure.print_step(2, "Testing configuration")

    lines = capsys.readouterr().out.strip().splitlines()
    assert lines == ["(2/3) Testing configuration", "~" * len("(2/3) Testing configuration")]
