"""Bus policy loading package."""

from buspolicy.policy.dump import dump_policy, format_policy
from buspolicy.policy.identity import (
    IdentityResolver,
    StaticIdentityResolver,
    SystemIdentityResolver,
)
from buspolicy.policy.loader import get_policy_paths, list_dropin_files, load_file, load_policy
from buspolicy.policy.parser import (
    PolicyGrammarError,
    PolicyIOError,
    PolicyLoadError,
    PolicyParser,
    PolicySyntaxError,
    parse_document,
)
from buspolicy.policy.rules import MessageType, PolicyRule, RuleClass, RuleKind
from buspolicy.policy.store import PolicyScope, PolicyStore, free_policy

__all__ = [
    "IdentityResolver",
    "MessageType",
    "PolicyGrammarError",
    "PolicyIOError",
    "PolicyLoadError",
    "PolicyParser",
    "PolicyRule",
    "PolicyScope",
    "PolicyStore",
    "PolicySyntaxError",
    "RuleClass",
    "RuleKind",
    "StaticIdentityResolver",
    "SystemIdentityResolver",
    "dump_policy",
    "format_policy",
    "free_policy",
    "get_policy_paths",
    "list_dropin_files",
    "load_file",
    "load_policy",
    "parse_document",
]
