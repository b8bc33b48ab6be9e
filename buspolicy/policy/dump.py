"""Human-readable listing of a loaded policy."""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape

from buspolicy.policy.identity import IdentityResolver, SystemIdentityResolver
from buspolicy.policy.rules import PolicyRule
from buspolicy.policy.store import PolicyStore


def _format_rules(rules: list[PolicyRule], resolver: IdentityResolver) -> list[str]:
    lines: list[str] = []
    for index, rule in enumerate(rules):
        if index:
            lines.append("--")
        user = resolver.user_name(rule.subject_uid) if rule.subject_uid is not None else None
        group = resolver.group_name(rule.subject_gid) if rule.subject_gid is not None else None
        lines.extend(rule.describe(user_name=user, group_name=group))
    return lines


def format_policy(store: PolicyStore, *, resolver: IdentityResolver | None = None) -> list[str]:
    """Render every rule of the store, section by section."""
    resolver = resolver or SystemIdentityResolver()
    lines = ["→ Default Items:"]
    lines.extend(_format_rules(store.default_rules(), resolver))

    lines.append("→ Mandatory Items:")
    lines.extend(_format_rules(store.mandatory_rules(), resolver))

    lines.append("→ Group Items:")
    for gid in store.groups():
        lines.append(f"Item for {resolver.group_name(gid) or gid}")
        lines.extend(_format_rules(store.group_rules(gid), resolver))

    lines.append("→ User Items:")
    for uid in store.users():
        lines.append(f"Item for {resolver.user_name(uid) or uid}")
        lines.extend(_format_rules(store.user_rules(uid), resolver))
    return lines


def dump_policy(
    store: PolicyStore,
    *,
    console: Console | None = None,
    resolver: IdentityResolver | None = None,
) -> None:
    """Print the policy listing."""
    out = console or Console()
    for line in format_policy(store, resolver=resolver):
        out.print(escape(line), highlight=False)
