"""Finite-state parser turning busconfig token streams into policy rules.

One ``PolicyParser`` consumes the tokens of exactly one document. Every state
has a handler that either accepts the token (possibly moving to another state)
or raises ``PolicyGrammarError`` with a stable diagnostic code. Rules are only
handed to the store when their element closes, so an aborted document never
leaves a half-built rule behind; rules committed before the error stay.

A ``<policy>`` may name at most one of ``context=``, ``user=`` and ``group=``;
a second one is a hardening check (``policy-scope-conflict``) rather than
overriding the first. A ``<policy>`` naming none of them (for example
only ``at_console=``) is tolerated: its rules are dropped with a warning.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Literal

from loguru import logger

from buspolicy.markup.tokenizer import MarkupError, Token, is_whitespace, tokenize
from buspolicy.policy.identity import IdentityResolver, SystemIdentityResolver
from buspolicy.policy.rules import (
    RULE_ELEMENTS,
    PolicyRule,
    RuleClass,
    classify_attribute,
    message_type_from_string,
)
from buspolicy.policy.store import (
    DEFAULT_SCOPE,
    MANDATORY_SCOPE,
    PolicyScope,
    PolicyStore,
    ScopeCategory,
)

ParserState = Literal[
    "outside",
    "busconfig",
    "policy",
    "policy_context",
    "policy_user",
    "policy_group",
    "policy_other_attribute",
    "allow_deny",
    "allow_deny_interface",
    "allow_deny_member",
    "allow_deny_error",
    "allow_deny_path",
    "allow_deny_message_type",
    "allow_deny_name",
    "allow_deny_other_attribute",
    "other",
]

# Rule field -> state that receives its value.
_FIELD_STATES: dict[str, ParserState] = {
    "interface": "allow_deny_interface",
    "member": "allow_deny_member",
    "error_name": "allow_deny_error",
    "path": "allow_deny_path",
    "message_type": "allow_deny_message_type",
    "name": "allow_deny_name",
}

# Value state -> (rule field, label used in duplicate diagnostics).
_STRING_FIELD_STATES: dict[ParserState, tuple[str, str]] = {
    "allow_deny_interface": ("interface", "interface"),
    "allow_deny_member": ("member", "member"),
    "allow_deny_error": ("error_name", "error"),
    "allow_deny_path": ("path", "path"),
    "allow_deny_name": ("name", "name"),
}

_CONTEXT_SCOPES: dict[str, PolicyScope] = {
    "default": DEFAULT_SCOPE,
    "mandatory": MANDATORY_SCOPE,
}


class PolicyLoadError(RuntimeError):
    """Base error for a policy source that could not be loaded."""

    def __init__(self, message: str, *, path: str):
        super().__init__(message)
        self.message = message
        self.path = path

    def __str__(self) -> str:
        return f"{self.message} ({self.path})"


class PolicyIOError(PolicyLoadError):
    """A policy source exists but cannot be read or listed."""


class PolicySyntaxError(PolicyLoadError):
    """Malformed markup in a policy document."""

    def __init__(self, message: str, *, path: str, line: int):
        super().__init__(message, path=path)
        self.line = line

    def __str__(self) -> str:
        return f"{self.message} at {self.path}:{self.line}."


class PolicyGrammarError(PolicyLoadError):
    """Well-formed markup that violates the busconfig grammar."""

    def __init__(self, message: str, *, path: str, line: int, code: str):
        super().__init__(message, path=path)
        self.line = line
        self.code = code

    def __str__(self) -> str:
        return f"{self.message} at {self.path}:{self.line}."


class PolicyParser:
    """Grammar state machine for one busconfig document."""

    def __init__(
        self,
        store: PolicyStore,
        *,
        path: str = "<string>",
        resolver: IdentityResolver | None = None,
    ):
        self.store = store
        self.path = path
        self.resolver = resolver or SystemIdentityResolver()
        self.state: ParserState = "outside"
        self.committed = 0
        self.finished = False
        self._rule: PolicyRule | None = None
        self._other_depth = 0
        self._scope_category: ScopeCategory | None = None
        self._scope_context: PolicyScope | None = None
        self._scope_principal: str | None = None
        self._scope_resolved = False
        self._scope: PolicyScope | None = None
        self._handlers: dict[ParserState, Callable[[Token], None]] = {
            "outside": self._on_outside,
            "busconfig": self._on_busconfig,
            "policy": self._on_policy,
            "policy_context": self._on_policy_context,
            "policy_user": self._on_policy_principal,
            "policy_group": self._on_policy_principal,
            "policy_other_attribute": self._on_policy_other_attribute,
            "allow_deny": self._on_allow_deny,
            "allow_deny_interface": self._on_rule_string,
            "allow_deny_member": self._on_rule_string,
            "allow_deny_error": self._on_rule_string,
            "allow_deny_path": self._on_rule_string,
            "allow_deny_message_type": self._on_rule_message_type,
            "allow_deny_name": self._on_rule_string,
            "allow_deny_other_attribute": self._on_allow_deny_other_attribute,
            "other": self._on_other,
        }

    def feed(self, token: Token) -> bool:
        """Apply one token. Returns True once the document is complete."""
        if self.finished:
            raise self._error("unexpected:finished", "Token after end of document", token)
        self._handlers[self.state](token)
        return self.finished

    def parse(self, tokens: Iterable[Token]) -> int:
        """Consume a whole token stream; return the number of committed rules."""
        last_line = 0
        for token in tokens:
            last_line = token.line
            if self.feed(token):
                return self.committed
        raise PolicyGrammarError(
            "Document ended without end token",
            path=self.path,
            line=last_line,
            code=f"unexpected:{self.state}",
        )

    # -- helpers ---------------------------------------------------------

    def _error(self, code: str, message: str, token: Token) -> PolicyGrammarError:
        return PolicyGrammarError(message, path=self.path, line=token.line, code=code)

    def _unexpected(self, token: Token) -> PolicyGrammarError:
        detail = f" {token.value!r}" if token.value and token.kind != "text" else ""
        return self._error(
            f"unexpected:{self.state}",
            f"Unexpected {token.kind} token{detail} in state {self.state}",
            token,
        )

    def _require_blank(self, token: Token) -> None:
        if token.kind != "text" or not is_whitespace(token.value):
            raise self._unexpected(token)

    def _reset_scope(self) -> None:
        self._scope_category = None
        self._scope_context = None
        self._scope_principal = None
        self._scope_resolved = False
        self._scope = None

    def _set_scope_category(self, category: ScopeCategory, token: Token) -> None:
        if self._scope_category is not None:
            raise self._error(
                "policy-scope-conflict",
                "Only one of context=, user= and group= is allowed on <policy>",
                token,
            )
        self._scope_category = category

    def _current_rule(self) -> PolicyRule:
        assert self._rule is not None
        return self._rule

    # -- document level --------------------------------------------------

    def _on_outside(self, token: Token) -> None:
        if token.kind == "tag_open":
            if token.value != "busconfig":
                raise self._error("unexpected-tag", f"Unexpected tag {token.value}", token)
            self.state = "busconfig"
        elif token.kind == "end":
            self.finished = True
        else:
            self._require_blank(token)

    def _on_busconfig(self, token: Token) -> None:
        if token.kind == "tag_open":
            if token.value == "policy":
                self._reset_scope()
                self.state = "policy"
            else:
                logger.warning(
                    "Skipping unknown element <{}> at {}:{}", token.value, self.path, token.line
                )
                self._other_depth = 0
                self.state = "other"
        elif token.kind == "tag_close_empty" or (
            token.kind == "tag_close" and token.value == "busconfig"
        ):
            self.state = "outside"
        else:
            self._require_blank(token)

    def _on_other(self, token: Token) -> None:
        if token.kind == "tag_open":
            self._other_depth += 1
        elif token.kind in ("tag_close", "tag_close_empty"):
            if self._other_depth == 0:
                self.state = "busconfig"
            else:
                self._other_depth -= 1
        elif token.kind == "end":
            raise self._unexpected(token)

    # -- <policy> --------------------------------------------------------

    def _on_policy(self, token: Token) -> None:
        if token.kind == "attribute_name":
            if token.value == "context":
                self.state = "policy_context"
            elif token.value == "user":
                self.state = "policy_user"
            elif token.value == "group":
                self.state = "policy_group"
            else:
                logger.warning(
                    "Attribute {} of <policy> tag unknown at {}:{}, ignoring.",
                    token.value,
                    self.path,
                    token.line,
                )
                self.state = "policy_other_attribute"
        elif token.kind == "tag_close_empty" or (
            token.kind == "tag_close" and token.value == "policy"
        ):
            self.state = "busconfig"
        elif token.kind == "tag_open":
            kind = RULE_ELEMENTS.get(token.value)
            if kind is None:
                raise self._error(
                    "unexpected-tag", f"Unknown tag {token.value} in <policy>", token
                )
            self._rule = PolicyRule(kind=kind, source=self.path, line=token.line)
            self.state = "allow_deny"
        else:
            self._require_blank(token)

    def _on_policy_context(self, token: Token) -> None:
        if token.kind != "attribute_value":
            raise self._unexpected(token)
        scope = _CONTEXT_SCOPES.get(token.value)
        if scope is None:
            raise self._error(
                "unknown-context",
                f"context= parameter {token.value} unknown for <policy>",
                token,
            )
        self._set_scope_category(scope.category, token)
        self._scope_context = scope
        self.state = "policy"

    def _on_policy_principal(self, token: Token) -> None:
        if token.kind != "attribute_value":
            raise self._unexpected(token)
        category: ScopeCategory = "user" if self.state == "policy_user" else "group"
        self._set_scope_category(category, token)
        self._scope_principal = token.value
        self.state = "policy"

    def _on_policy_other_attribute(self, token: Token) -> None:
        if token.kind != "attribute_value":
            raise self._unexpected(token)
        self.state = "policy"

    def _resolve_scope(self, token: Token) -> PolicyScope | None:
        """Scope of the enclosing <policy>, or None when its rules are dropped."""
        if self._scope_context is not None:
            return self._scope_context
        if self._scope_resolved:
            return self._scope

        self._scope_resolved = True
        if self._scope_category is None:
            logger.warning(
                "<policy> without context=, user= or group= at {}:{}, ignoring its rules.",
                self.path,
                token.line,
            )
            return None
        principal = self._scope_principal or ""
        if self._scope_category == "user":
            uid = self.resolver.user_id(principal)
            self._scope = None if uid is None else PolicyScope(category="user", uid=uid)
        else:
            gid = self.resolver.group_id(principal)
            self._scope = None if gid is None else PolicyScope(category="group", gid=gid)
        if self._scope is None:
            logger.warning(
                "Unknown {} {} in <policy> at {}:{}, ignoring its rules.",
                self._scope_category,
                principal,
                self.path,
                token.line,
            )
        return self._scope

    # -- <allow>/<deny> --------------------------------------------------

    def _on_allow_deny(self, token: Token) -> None:
        rule = self._current_rule()
        if token.kind == "attribute_name":
            classified = classify_attribute(token.value)
            if classified is None:
                logger.warning(
                    "Unknown attribute {}= at {}:{}, ignoring.", token.value, self.path, token.line
                )
                self.state = "allow_deny_other_attribute"
                return
            rule_class, field_name = classified
            if rule.rule_class is not RuleClass.UNSET and rule.rule_class is not rule_class:
                raise self._error(
                    "class-conflict",
                    f"{token.value}= mixed with {rule.rule_class.value} attributes on same tag",
                    token,
                )
            rule.rule_class = rule_class
            self.state = _FIELD_STATES[field_name]
        elif token.kind == "tag_close_empty" or (
            token.kind == "tag_close" and token.value == rule.element
        ):
            self._finish_rule(token)
        else:
            self._require_blank(token)

    def _finish_rule(self, token: Token) -> None:
        rule = self._current_rule()
        if rule.rule_class is RuleClass.UNSET:
            raise self._error("class-unset", "Policy not set", token)
        scope = self._resolve_scope(token)
        if scope is not None:
            self.store.commit(rule, scope)
            self.committed += 1
        self._rule = None
        self.state = "policy"

    def _on_rule_string(self, token: Token) -> None:
        if token.kind != "attribute_value":
            raise self._unexpected(token)
        rule = self._current_rule()
        field_name, label = _STRING_FIELD_STATES[self.state]
        if getattr(rule, field_name) is not None:
            raise self._error(f"duplicate-{label}", f"Duplicate {label}", token)
        setattr(rule, field_name, token.value)
        self.state = "allow_deny"

    def _on_rule_message_type(self, token: Token) -> None:
        if token.kind != "attribute_value":
            raise self._unexpected(token)
        rule = self._current_rule()
        if rule.message_type is not None:
            raise self._error("duplicate-message-type", "Duplicate message type", token)
        message_type = message_type_from_string(token.value)
        if message_type is None:
            raise self._error(
                "invalid-message-type", f"Invalid message type {token.value}", token
            )
        rule.message_type = message_type
        self.state = "allow_deny"

    def _on_allow_deny_other_attribute(self, token: Token) -> None:
        if token.kind != "attribute_value":
            raise self._unexpected(token)
        self.state = "allow_deny"


def parse_document(
    store: PolicyStore,
    text: str,
    *,
    path: str = "<string>",
    resolver: IdentityResolver | None = None,
) -> int:
    """Parse one document into the store; return the number of rules committed."""
    parser = PolicyParser(store, path=path, resolver=resolver)
    try:
        return parser.parse(tokenize(text))
    except MarkupError as e:
        raise PolicySyntaxError(e.message, path=path, line=e.line) from e
