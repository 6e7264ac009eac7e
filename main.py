"""Command-line interface for the roster management tool."""

from __future__ import annotations
import argparse
import logging
import os
from dataclasses import dataclass
from getpass import getpass
from typing import Optional, Sequence, Tuple

from roster.accounts import AccountService
from roster.config import DirectoryConfig, Settings, load_settings, resolve_config_path
from roster.credentials import CredentialPolicy
from roster.directory import LdapDirectoryClient
from roster.errors import AuthenticationError, RosterError, ValidationError, WeakPasswordError
from roster.models import AccountStatus, Position, UserRecord
from roster.provisioning import DirectoryProvisioner, ExportOutcome
from roster.store import RecordStore

logger = logging.getLogger("rosterctl.main")

_MAX_ATTEMPTS = 3


@dataclass
class _Context:
    settings: Settings
    store: RecordStore
    accounts: AccountService


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Roster account management utilities")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the YAML configuration file (default: ROSTER_CONFIG or config/roster.yaml)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="console")

    subparsers.add_parser("console", help="Launch the interactive menu")
    subparsers.add_parser("list", help="List active accounts")

    add_parser = subparsers.add_parser("add", help="Create a new account")
    add_parser.add_argument("surname")
    add_parser.add_argument("given_name")
    add_parser.add_argument("position", choices=[position.value for position in Position])

    login_parser = subparsers.add_parser("login", help="Authenticate an account")
    login_parser.add_argument("handle")

    status_parser = subparsers.add_parser("status", help="Change the status of an account")
    status_parser.add_argument("handle")
    status_parser.add_argument("status", choices=[status.value for status in AccountStatus])

    subparsers.add_parser("export", help="Provision roster accounts into the directory")

    return parser.parse_args(list(argv) if argv is not None else None)


def _build_context(config_path: Optional[str]) -> _Context:
    resolved = resolve_config_path(config_path or os.getenv("ROSTER_CONFIG"))
    settings = load_settings(resolved)
    store = RecordStore(settings.roster_path, delimiter=settings.delimiter)
    credentials = CredentialPolicy(settings.credential_scheme)
    if not credentials.hashes_credentials:
        logger.debug("Credentials in %s are stored as plaintext", settings.roster_path)
    accounts = AccountService(credentials)
    logger.debug("Using roster file %s", settings.roster_path)
    return _Context(settings=settings, store=store, accounts=accounts)


def _run_console(context: _Context) -> None:
    """Provide an interactive menu for the operator."""

    print("Roster Account Management")
    print("Press Ctrl+C at any time to exit.\n")

    try:
        while True:
            print("Select an option:")
            print("  1) List active accounts")
            print("  2) Create an account")
            print("  3) Sign in")
            print("  4) Export accounts to the directory")
            print("  5) Exit")

            choice = input("Enter choice [1-5]: ").strip()

            try:
                if choice == "1":
                    _list_accounts(context)
                elif choice == "2":
                    _add_account(context)
                elif choice == "3":
                    _login(context)
                elif choice == "4":
                    _export(context)
                elif choice == "5":
                    print("Goodbye!")
                    return
                else:
                    print("Invalid selection. Please choose a number from the menu.\n")
            except RosterError as exc:
                print(f"Operation failed: {exc}")

            print()
    except (KeyboardInterrupt, EOFError):
        print("\nExiting roster console.")


def _format_timestamp(record: UserRecord) -> str:
    if record.last_login is None:
        return "never"
    return record.last_login.strftime("%Y-%m-%d %H:%M:%S %Z").strip()


def _list_accounts(context: _Context) -> int:
    active = context.accounts.list_active(context.store.load())
    if not active:
        print("No active accounts.")
        return 0

    print(f"{len(active)} active account(s):")
    print(f"{'Handle':<16}  {'Name':<32}  {'Position':<10}  Last login")
    print("-" * 80)
    for record in active:
        print(
            f"{record.handle:<16}  {record.full_name:<32}  {record.position.value:<10}  "
            f"{_format_timestamp(record)}"
        )
    return 0


def _prompt_position() -> Optional[str]:
    choices = [position.value for position in Position]
    for index, value in enumerate(choices, start=1):
        print(f"  {index}) {value}")
    answer = input("Position: ").strip()
    if answer.isdigit() and 1 <= int(answer) <= len(choices):
        return choices[int(answer) - 1]
    return answer or None


def _prompt_identity(context: _Context) -> Optional[Tuple[str, str, Position]]:
    """Ask for the names and position until they validate, or ``None`` to cancel."""

    print("\nCreate a new account (leave the surname blank to cancel).")
    for _ in range(_MAX_ATTEMPTS):
        surname = input("Surname: ").strip()
        if not surname:
            print("Account creation cancelled.")
            return None
        given_name = input("Given name: ").strip()
        position = _prompt_position() or ""

        try:
            return context.accounts.validate_identity(surname, given_name, position)
        except ValidationError as exc:
            print(f"{exc}. Please try again.")

    print("Aborted creating account.")
    return None


def _add_account(
    context: _Context,
    surname: Optional[str] = None,
    given_name: Optional[str] = None,
    position: Optional[str] = None,
) -> int:
    if surname is None:
        identity = _prompt_identity(context)
        if identity is None:
            return 1
    else:
        try:
            identity = context.accounts.validate_identity(surname, given_name or "", position or "")
        except ValidationError as exc:
            print(f"Failed to create account: {exc}")
            return 1

    surname, given_name, resolved_position = identity
    roster = context.store.load()
    for _ in range(_MAX_ATTEMPTS):
        password = getpass("Password: ")
        confirmation = getpass("Confirm password: ")
        if password != confirmation:
            print("Passwords do not match. Please try again.")
            continue

        try:
            record, roster = context.accounts.create_account(
                roster, surname, given_name, resolved_position, password
            )
        except WeakPasswordError as exc:
            print(f"{exc}. Please try again.")
            continue

        context.store.save(roster)
        print(f"Created account {record.handle} for {record.full_name} ({record.position.value}).")
        return 0

    print("Aborted creating account.")
    return 1


def _login(context: _Context, handle: Optional[str] = None) -> int:
    if handle is None:
        handle = input("Handle: ").strip()
    password = getpass("Password: ")

    try:
        record, roster = context.accounts.authenticate(context.store.load(), handle, password)
    except AuthenticationError as exc:
        print(f"Sign-in refused: {exc}")
        return 1

    context.store.save(roster)
    print(f"Welcome, {record.full_name}! Signed in at {_format_timestamp(record)}.")
    return 0


def _set_status(context: _Context, handle: str, status: str) -> int:
    try:
        record, roster = context.accounts.set_status(context.store.load(), handle, status)
    except AuthenticationError as exc:
        print(f"Unable to change status: {exc}")
        return 1

    context.store.save(roster)
    print(f"Account {record.handle} is now {record.status.value}.")
    return 0


def _open_directory(config: DirectoryConfig) -> LdapDirectoryClient:
    return LdapDirectoryClient(config.ldap)


def _export(context: _Context) -> int:
    directory = context.settings.directory
    if directory is None:
        print("Directory export is not configured. Add a 'directory' section to the configuration file.")
        return 1

    roster = context.store.load()
    print(f"Exporting {len(roster)} account(s) to {directory.ldap.server}...")
    with _open_directory(directory) as client:
        provisioner = DirectoryProvisioner(client, directory.mapping, domain_suffix=directory.domain_suffix)
        summary = provisioner.export_all(roster)

    for result in summary.results:
        if result.outcome is ExportOutcome.ERROR:
            print(f"  ! {result.handle}: {result.message}")

    print(
        f"Created: {summary.created}  Skipped: {summary.skipped}  "
        f"Errors: {summary.errors}  Total: {summary.total}"
    )
    return 0 if summary.errors == 0 else 1


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    try:
        context = _build_context(args.config)
    except RosterError as exc:
        print(f"Error: {exc}")
        return 1

    if args.command == "console":
        _run_console(context)
        return 0

    try:
        if args.command == "list":
            return _list_accounts(context)
        if args.command == "add":
            return _add_account(context, args.surname, args.given_name, args.position)
        if args.command == "login":
            return _login(context, args.handle)
        if args.command == "status":
            return _set_status(context, args.handle, args.status)
        if args.command == "export":
            return _export(context)
    except RosterError as exc:
        print(f"Error: {exc}")
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
