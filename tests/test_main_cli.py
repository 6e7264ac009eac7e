from __future__ import annotations

import contextlib
from pathlib import Path

import pytest

import main
from conftest import FakeDirectory, make_record
from main import _parse_args
from roster.models import AccountStatus, Position
from roster.store import RecordStore


CONFIG_TEMPLATE = """
roster:
  path: {roster}
directory:
  server: dc01.example.com
  bind_dn: CN=svc,DC=example,DC=com
  base_dn: DC=example,DC=com
  domain_suffix: "@example.com"
  mapping:
    TTP: {{ou: "OU=TTP,DC=example,DC=com", group: GG_TTP}}
    Secretary: {{ou: "OU=Secretariat,DC=example,DC=com"}}
    Admin: {{ou: "OU=Admins,DC=example,DC=com"}}
"""


@pytest.fixture()
def config_path(tmp_path: Path) -> Path:
    path = tmp_path / "roster.yaml"
    path.write_text(CONFIG_TEMPLATE.format(roster=tmp_path / "users.txt"), encoding="utf-8")
    return path


@pytest.fixture()
def store(tmp_path: Path) -> RecordStore:
    return RecordStore(tmp_path / "users.txt")


def _feed(monkeypatch: pytest.MonkeyPatch, *, inputs=(), passwords=()) -> None:
    input_values = iter(inputs)
    password_values = iter(passwords)
    monkeypatch.setattr("builtins.input", lambda prompt="": next(input_values))
    monkeypatch.setattr(main, "getpass", lambda prompt="": next(password_values))


def test_default_command_is_console() -> None:
    args = _parse_args([])
    assert args.command == "console"


def test_global_options_without_subcommand() -> None:
    args = _parse_args(["--config", "custom.yaml", "--verbose"])
    assert args.command == "console"
    assert args.config == "custom.yaml"
    assert args.verbose is True


def test_add_subcommand_arguments() -> None:
    args = _parse_args(["add", "Dupont", "Jean", "TTP"])
    assert (args.command, args.surname, args.given_name, args.position) == ("add", "Dupont", "Jean", "TTP")


def test_add_command_retries_weak_password(monkeypatch, config_path, store, capsys) -> None:
    _feed(monkeypatch, passwords=["weak", "weak", "Welcome!2024", "Welcome!2024"])

    assert main.main(["--config", str(config_path), "add", "Dupont", "Jean", "TTP"]) == 0

    records = store.load()
    assert [record.handle for record in records] == ["jdupont"]
    assert records[0].credential == "Welcome!2024"
    output = capsys.readouterr().out
    assert "Please try again" in output
    assert "Created account jdupont" in output


def test_add_command_gives_up_after_three_attempts(monkeypatch, config_path, store) -> None:
    _feed(monkeypatch, passwords=["weak"] * 6)

    assert main.main(["--config", str(config_path), "add", "Dupont", "Jean", "TTP"]) == 1
    assert store.load() == []


def test_add_command_rejects_blank_given_name_before_asking_for_password(
    monkeypatch, config_path, store, capsys
) -> None:
    _feed(monkeypatch, passwords=[])

    assert main.main(["--config", str(config_path), "add", "Dupont", " ", "TTP"]) == 1
    assert store.load() == []
    assert "Given name must not be empty" in capsys.readouterr().out


def test_console_asks_again_for_invalid_names_before_password(monkeypatch, config_path, store, capsys) -> None:
    _feed(
        monkeypatch,
        inputs=["2", "Durand", "", "1", "Durand", "Claire", "1", "5"],
        passwords=["Welcome!2024", "Welcome!2024"],
    )

    assert main.main(["--config", str(config_path)]) == 0

    assert [record.handle for record in store.load()] == ["cdurand"]
    output = capsys.readouterr().out
    assert "Given name must not be empty. Please try again." in output
    assert "Created account cdurand" in output


def test_console_cancels_account_creation_on_blank_surname(monkeypatch, config_path, store, capsys) -> None:
    _feed(monkeypatch, inputs=["2", "", "5"], passwords=[])

    assert main.main(["--config", str(config_path)]) == 0

    assert store.load() == []
    assert "Account creation cancelled." in capsys.readouterr().out


def test_login_command_records_last_login(monkeypatch, config_path, store) -> None:
    original = make_record("jdupont")
    other = make_record("amartin", surname="Martin", given_name="Alice", position=Position.ADMIN)
    store.save([original, other])
    _feed(monkeypatch, passwords=["Secr3t!pw"])

    assert main.main(["--config", str(config_path), "login", "jdupont"]) == 0

    reloaded = store.load()
    assert reloaded[0].last_login != original.last_login
    assert reloaded[1] == other


def test_login_command_reports_locked_account(monkeypatch, config_path, store, capsys) -> None:
    store.save([make_record("jdupont", status=AccountStatus.LOCKED)])
    _feed(monkeypatch, passwords=["Secr3t!pw"])

    assert main.main(["--config", str(config_path), "login", "jdupont"]) == 1
    assert "locked" in capsys.readouterr().out


def test_status_command(config_path, store) -> None:
    store.save([make_record("jdupont")])

    assert main.main(["--config", str(config_path), "status", "jdupont", "Inactive"]) == 0
    assert store.load()[0].status is AccountStatus.INACTIVE


def test_list_command_shows_only_active_accounts(config_path, store, capsys) -> None:
    store.save(
        [
            make_record("jdupont"),
            make_record("pidle", surname="Idle", given_name="Paul", status=AccountStatus.INACTIVE),
        ]
    )

    assert main.main(["--config", str(config_path), "list"]) == 0

    output = capsys.readouterr().out
    assert "jdupont" in output
    assert "pidle" not in output


def test_export_command_uses_configured_directory(monkeypatch, config_path, store, capsys) -> None:
    store.save([make_record("jdupont")])
    directory = FakeDirectory()
    monkeypatch.setattr(main, "_open_directory", lambda config: contextlib.nullcontext(directory))

    assert main.main(["--config", str(config_path), "export"]) == 0
    assert directory.accounts["jdupont"].principal_name == "jdupont@example.com"
    assert directory.groups == {"GG_TTP": ["jdupont"]}
    assert "Created: 1" in capsys.readouterr().out

    assert main.main(["--config", str(config_path), "export"]) == 0
    assert "Skipped: 1" in capsys.readouterr().out


def test_export_without_directory_configuration(tmp_path, capsys) -> None:
    config = tmp_path / "minimal.yaml"
    config.write_text(f"roster:\n  path: {tmp_path / 'users.txt'}\n", encoding="utf-8")

    assert main.main(["--config", str(config), "export"]) == 1
    assert "not configured" in capsys.readouterr().out


def test_console_create_then_sign_in(monkeypatch, config_path, store, capsys) -> None:
    _feed(
        monkeypatch,
        inputs=["2", "Durand", "Claire", "2", "3", "cdurand", "1", "9", "5"],
        passwords=["Welcome!2024", "Welcome!2024", "Welcome!2024"],
    )

    assert main.main(["--config", str(config_path)]) == 0

    records = store.load()
    assert [(record.handle, record.position) for record in records] == [("cdurand", Position.SECRETARY)]
    output = capsys.readouterr().out
    assert "Welcome, Claire Durand!" in output
    assert "1 active account(s)" in output
    assert "Invalid selection" in output
    assert "Goodbye!" in output


def test_console_survives_errors(monkeypatch, tmp_path, capsys) -> None:
    config = tmp_path / "roster.yaml"
    roster_file = tmp_path / "users.txt"
    config.write_text(f"roster:\n  path: {roster_file}\n", encoding="utf-8")
    roster_file.write_text("not;enough;fields\n", encoding="utf-8")
    _feed(monkeypatch, inputs=["1", "5"])

    assert main.main(["--config", str(config)]) == 0

    output = capsys.readouterr().out
    assert "Operation failed" in output
    assert "Goodbye!" in output
