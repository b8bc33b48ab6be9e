"""Principal name resolution for per-user and per-group policies."""

from __future__ import annotations

import grp
import pwd
from collections.abc import Mapping
from typing import Protocol


class IdentityResolver(Protocol):
    """Maps user/group names to numeric ids and back."""

    def user_id(self, name: str) -> int | None: ...

    def group_id(self, name: str) -> int | None: ...

    def user_name(self, uid: int) -> str | None: ...

    def group_name(self, gid: int) -> str | None: ...


def normalize_principal(value: str) -> str:
    """Normalize one principal token from a policy attribute."""
    return value.strip()


def parse_numeric_id(value: str) -> int | None:
    """Return the id for an all-digit principal, else None."""
    token = normalize_principal(value)
    if token.isascii() and token.isdigit():
        return int(token)
    return None


class SystemIdentityResolver:
    """Resolves principals through the password and group databases."""

    def user_id(self, name: str) -> int | None:
        numeric = parse_numeric_id(name)
        if numeric is not None:
            return numeric
        try:
            return pwd.getpwnam(normalize_principal(name)).pw_uid
        except KeyError:
            return None

    def group_id(self, name: str) -> int | None:
        numeric = parse_numeric_id(name)
        if numeric is not None:
            return numeric
        try:
            return grp.getgrnam(normalize_principal(name)).gr_gid
        except KeyError:
            return None

    def user_name(self, uid: int) -> str | None:
        try:
            return pwd.getpwuid(uid).pw_name
        except KeyError:
            return None

    def group_name(self, gid: int) -> str | None:
        try:
            return grp.getgrgid(gid).gr_name
        except KeyError:
            return None


class StaticIdentityResolver:
    """Resolves principals from fixed name -> id tables."""

    def __init__(
        self,
        users: Mapping[str, int] | None = None,
        groups: Mapping[str, int] | None = None,
    ):
        self._users = dict(users or {})
        self._groups = dict(groups or {})
        self._user_names = {uid: name for name, uid in self._users.items()}
        self._group_names = {gid: name for name, gid in self._groups.items()}

    def user_id(self, name: str) -> int | None:
        numeric = parse_numeric_id(name)
        if numeric is not None:
            return numeric
        return self._users.get(normalize_principal(name))

    def group_id(self, name: str) -> int | None:
        numeric = parse_numeric_id(name)
        if numeric is not None:
            return numeric
        return self._groups.get(normalize_principal(name))

    def user_name(self, uid: int) -> str | None:
        return self._user_names.get(uid)

    def group_name(self, gid: int) -> str | None:
        return self._group_names.get(gid)
