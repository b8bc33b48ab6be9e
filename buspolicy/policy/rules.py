"""Rule records and the fixed name tables of the busconfig vocabulary."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RuleKind(Enum):
    """Whether a rule grants or refuses."""

    UNSET = "unset"
    ALLOW = "allow"
    DENY = "deny"


class RuleClass(Enum):
    """Axis a rule restricts."""

    UNSET = "unset"
    SEND = "send"
    RECEIVE = "recv"
    OWN = "own"
    OWN_PREFIX = "own-prefix"
    USER = "user"
    GROUP = "group"


class MessageType(Enum):
    """Bus message types, valued by their wire code."""

    METHOD_CALL = 1
    METHOD_RETURN = 2
    ERROR = 3
    SIGNAL = 4


MESSAGE_TYPE_NAMES: dict[str, MessageType] = {
    "method_call": MessageType.METHOD_CALL,
    "method_return": MessageType.METHOD_RETURN,
    "error": MessageType.ERROR,
    "signal": MessageType.SIGNAL,
}

# Element name -> rule kind.
RULE_ELEMENTS: dict[str, RuleKind] = {
    "allow": RuleKind.ALLOW,
    "deny": RuleKind.DENY,
}

# Attribute prefix -> class, for the send_*/receive_* families.
PREFIXED_CLASS_ATTRIBUTES: dict[str, RuleClass] = {
    "send_": RuleClass.SEND,
    "receive_": RuleClass.RECEIVE,
}

# Whole attribute name -> class; the value is the rule's name field.
NAMED_CLASS_ATTRIBUTES: dict[str, RuleClass] = {
    "own": RuleClass.OWN,
    "own_prefix": RuleClass.OWN_PREFIX,
    "user": RuleClass.USER,
    "group": RuleClass.GROUP,
}

# send_/receive_ suffix -> rule field receiving the value.
SHARED_SUFFIX_FIELDS: dict[str, str] = {
    "interface": "interface",
    "member": "member",
    "error": "error_name",
    "path": "path",
    "type": "message_type",
}

# Suffix naming the peer bus name, which differs per direction.
PEER_NAME_SUFFIX: dict[RuleClass, str] = {
    RuleClass.SEND: "destination",
    RuleClass.RECEIVE: "sender",
}


def message_type_from_string(value: str) -> MessageType | None:
    return MESSAGE_TYPE_NAMES.get(value)


def message_type_to_string(value: MessageType) -> str:
    return value.name.lower()


def classify_attribute(attribute: str) -> tuple[RuleClass, str] | None:
    """Map an <allow>/<deny> attribute to (class, rule field).

    Returns None for attributes outside the vocabulary, including send_/receive_
    attributes with an unknown suffix.
    """
    named = NAMED_CLASS_ATTRIBUTES.get(attribute)
    if named is not None:
        return named, "name"

    for prefix, rule_class in PREFIXED_CLASS_ATTRIBUTES.items():
        if not attribute.startswith(prefix):
            continue
        suffix = attribute[len(prefix) :]
        field_name = SHARED_SUFFIX_FIELDS.get(suffix)
        if field_name is not None:
            return rule_class, field_name
        if suffix == PEER_NAME_SUFFIX[rule_class]:
            return rule_class, "name"
        return None
    return None


@dataclass(slots=True)
class PolicyRule:
    """One <allow>/<deny> directive."""

    kind: RuleKind = RuleKind.UNSET
    rule_class: RuleClass = RuleClass.UNSET
    interface: str | None = None
    member: str | None = None
    error_name: str | None = None
    path: str | None = None
    name: str | None = None
    message_type: MessageType | None = None
    subject_uid: int | None = None
    subject_gid: int | None = None
    source: str | None = None
    line: int | None = None

    @property
    def is_finalized(self) -> bool:
        return self.kind is not RuleKind.UNSET and self.rule_class is not RuleClass.UNSET

    @property
    def element(self) -> str:
        """Element name that opened this rule."""
        return self.kind.value

    def describe(
        self,
        user_name: str | None = None,
        group_name: str | None = None,
    ) -> list[str]:
        """Render the rule as ``Field: value`` lines."""
        lines = [
            f"Type: {self.kind.value}",
            f"Class: {self.rule_class.value}",
        ]
        for label, value in (
            ("Interface", self.interface),
            ("Member", self.member),
            ("Error", self.error_name),
            ("Path", self.path),
            ("Name", self.name),
        ):
            if value is not None:
                lines.append(f"{label}: {value}")
        if self.message_type is not None:
            lines.append(f"Message Type: {message_type_to_string(self.message_type)}")
        if self.subject_uid is not None:
            lines.append(f"User: {user_name or 'n/a'}")
        if self.subject_gid is not None:
            lines.append(f"Group: {group_name or 'n/a'}")
        return lines
