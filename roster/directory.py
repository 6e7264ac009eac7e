"""Directory service client used to provision roster accounts."""
from __future__ import annotations

import logging
import ssl
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Protocol

import ldap3
from ldap3.core.exceptions import LDAPException
from ldap3.utils.conv import escape_filter_chars
from ldap3.utils.dn import escape_rdn

from .errors import DirectoryError
from .models import Position

logger = logging.getLogger("rosterctl.directory")

# userAccountControl flags for a normal account.
UAC_NORMAL_ACCOUNT = 0x0200
UAC_ACCOUNT_DISABLE = 0x0002

USER_OBJECT_CLASSES = ["top", "person", "organizationalPerson", "user"]


@dataclass(frozen=True)
class DirectoryPlacement:
    """Where accounts of a given position are created in the directory."""

    ou: str
    group: Optional[str] = None


DirectoryMapping = Mapping[Position, DirectoryPlacement]


@dataclass(frozen=True)
class DirectoryEntry:
    dn: str
    handle: str


@dataclass(frozen=True)
class DirectoryAccount:
    """Attributes of an account to create in the directory."""

    ou: str
    full_name: str
    given_name: str
    surname: str
    login_name: str
    principal_name: str
    enabled: bool
    must_change_password: bool = True


class DirectoryClient(Protocol):
    def find_by_handle(self, handle: str) -> Optional[DirectoryEntry]:
        ...

    def create_account(self, account: DirectoryAccount) -> DirectoryEntry:
        ...

    def add_to_group(self, group: str, handle: str) -> None:
        ...


@dataclass(frozen=True)
class LdapSettings:
    """Connection parameters for an Active Directory domain controller."""

    server: str
    bind_dn: str
    password: str
    base_dn: str
    port: Optional[int] = None
    use_ssl: bool = True
    validate_certificate: bool = True

    def resolved_port(self) -> int:
        if self.port is not None:
            return self.port
        return 636 if self.use_ssl else 389


class LdapDirectoryClient:
    """:class:`DirectoryClient` backed by an ``ldap3`` connection.

    The connection is opened lazily on first use. Pass ``connection`` to reuse
    an existing bound :class:`ldap3.Connection`.
    """

    def __init__(
        self,
        settings: Optional[LdapSettings] = None,
        *,
        connection: Optional[ldap3.Connection] = None,
        base_dn: Optional[str] = None,
    ) -> None:
        if settings is None and connection is None:
            raise ValueError("Either LDAP settings or an existing connection must be provided")
        self._settings = settings
        self._connection = connection
        if base_dn is None:
            base_dn = settings.base_dn if settings is not None else ""
        self._base_dn = base_dn

    def __enter__(self) -> "LdapDirectoryClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def base_dn(self) -> str:
        return self._base_dn

    def connect(self) -> ldap3.Connection:
        if self._connection is not None:
            return self._connection

        settings = self._settings
        if settings is None:
            raise DirectoryError("Connection was closed and no settings are available to reopen it")
        tls = None
        if settings.use_ssl:
            validate = ssl.CERT_REQUIRED if settings.validate_certificate else ssl.CERT_NONE
            tls = ldap3.Tls(validate=validate)

        server = ldap3.Server(
            settings.server,
            port=settings.resolved_port(),
            use_ssl=settings.use_ssl,
            tls=tls,
            get_info=ldap3.NONE,
        )
        try:
            self._connection = ldap3.Connection(
                server,
                user=settings.bind_dn,
                password=settings.password,
                auto_bind=True,
                raise_exceptions=False,
            )
        except LDAPException as exc:
            raise DirectoryError(f"Unable to bind to {settings.server}: {exc}") from exc

        logger.info("Connected to directory server %s:%s", settings.server, settings.resolved_port())
        return self._connection

    def close(self) -> None:
        if self._connection is None:
            return
        try:
            self._connection.unbind()
        except LDAPException as exc:  # pragma: no cover - best effort during shutdown
            logger.debug("Ignoring error while unbinding: %s", exc)
        self._connection = None

    def _search(self, search_filter: str, attributes: List[str], target: str) -> list:
        """Run a subtree search and return its entries.

        An empty list means the search succeeded without matches. Any other
        result code raises :class:`DirectoryError`.
        """
        conn = self.connect()
        try:
            found = conn.search(
                search_base=self.base_dn,
                search_filter=search_filter,
                search_scope=ldap3.SUBTREE,
                attributes=attributes,
            )
        except LDAPException as exc:
            raise DirectoryError(f"Lookup of {target} failed: {exc}") from exc

        if found:
            return list(conn.entries)
        if (conn.result or {}).get("result") != 0:
            raise DirectoryError(f"Lookup of {target} failed: {self._describe_result(conn)}")
        return []

    def find_by_handle(self, handle: str) -> Optional[DirectoryEntry]:
        search_filter = f"(&(objectClass=user)(sAMAccountName={escape_filter_chars(handle)}))"
        entries = self._search(search_filter, ["sAMAccountName"], repr(handle))
        if not entries:
            return None
        return DirectoryEntry(dn=entries[0].entry_dn, handle=handle)

    def create_account(self, account: DirectoryAccount) -> DirectoryEntry:
        conn = self.connect()
        dn = f"CN={escape_rdn(account.full_name)},{account.ou}"

        user_account_control = UAC_NORMAL_ACCOUNT
        if not account.enabled:
            user_account_control |= UAC_ACCOUNT_DISABLE

        attributes: Dict[str, object] = {
            "cn": account.full_name,
            "displayName": account.full_name,
            "givenName": account.given_name,
            "sn": account.surname,
            "sAMAccountName": account.login_name,
            "userPrincipalName": account.principal_name,
            "userAccountControl": user_account_control,
        }
        if account.must_change_password:
            attributes["pwdLastSet"] = 0

        try:
            success = conn.add(dn, object_class=USER_OBJECT_CLASSES, attributes=attributes)
        except LDAPException as exc:
            raise DirectoryError(f"Creating {account.login_name!r} failed: {exc}") from exc

        if not success:
            raise DirectoryError(
                f"Creating {account.login_name!r} failed: {self._describe_result(conn)}"
            )

        logger.info("Created directory account %s at %s", account.login_name, dn)
        return DirectoryEntry(dn=dn, handle=account.login_name)

    def add_to_group(self, group: str, handle: str) -> None:
        user = self.find_by_handle(handle)
        if user is None:
            raise DirectoryError(f"Account {handle!r} does not exist in the directory")

        group_dn = self._resolve_group_dn(group)
        conn = self.connect()
        try:
            success = conn.modify(group_dn, {"member": [(ldap3.MODIFY_ADD, [user.dn])]})
        except LDAPException as exc:
            raise DirectoryError(f"Adding {handle!r} to {group!r} failed: {exc}") from exc

        if not success:
            raise DirectoryError(
                f"Adding {handle!r} to {group!r} failed: {self._describe_result(conn)}"
            )
        logger.info("Added %s to group %s", handle, group)

    def _resolve_group_dn(self, group: str) -> str:
        if "=" in group:
            return group

        search_filter = (
            f"(&(objectClass=group)(|(sAMAccountName={escape_filter_chars(group)})"
            f"(cn={escape_filter_chars(group)})))"
        )
        entries = self._search(search_filter, ["cn"], f"group {group!r}")
        if not entries:
            raise DirectoryError(f"Group {group!r} does not exist in the directory")
        return entries[0].entry_dn

    @staticmethod
    def _describe_result(conn: ldap3.Connection) -> str:
        result = conn.result or {}
        description = result.get("description") or "unknown error"
        message = result.get("message")
        return f"{description} ({message})" if message else str(description)


__all__ = [
    "DirectoryAccount",
    "DirectoryClient",
    "DirectoryEntry",
    "DirectoryMapping",
    "DirectoryPlacement",
    "LdapDirectoryClient",
    "LdapSettings",
]
