"""In-memory policy store assembled by the loader."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Literal

from buspolicy.policy.rules import PolicyRule

ScopeCategory = Literal["default", "mandatory", "user", "group"]


@dataclass(frozen=True, slots=True)
class PolicyScope:
    """Where a committed rule applies."""

    category: ScopeCategory
    uid: int | None = None
    gid: int | None = None

    def __post_init__(self) -> None:
        if self.category == "user" and self.uid is None:
            raise ValueError("user scope requires a uid")
        if self.category == "group" and self.gid is None:
            raise ValueError("group scope requires a gid")


DEFAULT_SCOPE = PolicyScope(category="default")
MANDATORY_SCOPE = PolicyScope(category="mandatory")


class PolicyStore:
    """Owns every loaded rule and the four containers ordering them.

    Rules live in an arena keyed by handle; the containers hold handles, newest
    first. A rule is reachable from exactly one container.
    """

    def __init__(self) -> None:
        self._arena: dict[int, PolicyRule] = {}
        self._handles_by_identity: dict[int, int] = {}
        self._next_handle = 0
        self._default: list[int] = []
        self._mandatory: list[int] = []
        self._by_uid: dict[int, list[int]] = {}
        self._by_gid: dict[int, list[int]] = {}

    def __len__(self) -> int:
        return len(self._arena)

    @property
    def is_empty(self) -> bool:
        return not self._arena

    def commit(self, rule: PolicyRule, scope: PolicyScope) -> int:
        """Take ownership of a finished rule and prepend it to its container."""
        if not rule.is_finalized:
            raise ValueError("cannot commit a rule without kind and class")
        if id(rule) in self._handles_by_identity:
            raise ValueError("rule is already committed")

        # Default and mandatory policies share one list.
        if scope.category in ("default", "mandatory"):
            container = self._default
        elif scope.category == "user":
            rule.subject_uid = scope.uid
            container = self._by_uid.setdefault(scope.uid, [])
        else:
            rule.subject_gid = scope.gid
            container = self._by_gid.setdefault(scope.gid, [])

        handle = self._next_handle
        self._next_handle += 1
        self._arena[handle] = rule
        self._handles_by_identity[id(rule)] = handle
        container.insert(0, handle)
        return handle

    def get(self, handle: int) -> PolicyRule:
        return self._arena[handle]

    def _resolve(self, handles: list[int]) -> list[PolicyRule]:
        return [self._arena[handle] for handle in handles]

    def default_rules(self) -> list[PolicyRule]:
        return self._resolve(self._default)

    def mandatory_rules(self) -> list[PolicyRule]:
        return self._resolve(self._mandatory)

    def user_rules(self, uid: int) -> list[PolicyRule]:
        return self._resolve(self._by_uid.get(uid, []))

    def group_rules(self, gid: int) -> list[PolicyRule]:
        return self._resolve(self._by_gid.get(gid, []))

    def users(self) -> list[int]:
        return sorted(self._by_uid)

    def groups(self) -> list[int]:
        return sorted(self._by_gid)

    def rules(self) -> Iterator[PolicyRule]:
        """Iterate every rule once, container by container."""
        yield from self.default_rules()
        yield from self.mandatory_rules()
        for gid in self.groups():
            yield from self.group_rules(gid)
        for uid in self.users():
            yield from self.user_rules(uid)

    def clear(self) -> None:
        """Release every rule and keyed container. Safe to repeat."""
        self._default.clear()
        self._mandatory.clear()
        for handles in self._by_uid.values():
            handles.clear()
        for handles in self._by_gid.values():
            handles.clear()
        self._by_uid.clear()
        self._by_gid.clear()
        self._handles_by_identity.clear()
        self._arena.clear()


def free_policy(store: PolicyStore | None) -> None:
    """Release everything a store holds, leaving it empty and reusable."""
    if store is None:
        return
    store.clear()
