import pytest

from buspolicy.policy.identity import StaticIdentityResolver, SystemIdentityResolver, parse_numeric_id
from buspolicy.policy.parser import PolicyGrammarError, parse_document
from buspolicy.policy.rules import PolicyRule, RuleClass, RuleKind
from buspolicy.policy.store import DEFAULT_SCOPE, PolicyScope, PolicyStore, free_policy


def _rule(name: str) -> PolicyRule:
    return PolicyRule(kind=RuleKind.ALLOW, rule_class=RuleClass.OWN, name=name)


def test_commit_routes_by_scope() -> None:
    store = PolicyStore()
    store.commit(_rule("d"), DEFAULT_SCOPE)
    store.commit(_rule("m"), PolicyScope(category="mandatory"))
    store.commit(_rule("u"), PolicyScope(category="user", uid=7))
    store.commit(_rule("g"), PolicyScope(category="group", gid=9))

    assert [rule.name for rule in store.default_rules()] == ["m", "d"]
    assert store.mandatory_rules() == []
    assert [rule.name for rule in store.user_rules(7)] == ["u"]
    assert [rule.name for rule in store.group_rules(9)] == ["g"]
    assert store.user_rules(9) == []
    assert store.group_rules(7) == []
    assert len(store) == 4


def test_commit_sets_subject_ids() -> None:
    store = PolicyStore()
    user_rule = _rule("u")
    group_rule = _rule("g")
    store.commit(user_rule, PolicyScope(category="user", uid=1000))
    store.commit(group_rule, PolicyScope(category="group", gid=100))
    assert user_rule.subject_uid == 1000
    assert user_rule.subject_gid is None
    assert group_rule.subject_gid == 100


def test_commit_rejects_unfinished_rule() -> None:
    store = PolicyStore()
    with pytest.raises(ValueError):
        store.commit(PolicyRule(kind=RuleKind.ALLOW), DEFAULT_SCOPE)
    assert store.is_empty


def test_rule_cannot_join_two_containers() -> None:
    store = PolicyStore()
    rule = _rule("once")
    store.commit(rule, DEFAULT_SCOPE)
    with pytest.raises(ValueError):
        store.commit(rule, PolicyScope(category="user", uid=1))
    assert len(store) == 1
    assert store.users() == []


def test_handles_resolve_to_rules() -> None:
    store = PolicyStore()
    rule = _rule("h")
    handle = store.commit(rule, DEFAULT_SCOPE)
    assert store.get(handle) is rule


def test_keyed_scope_requires_id() -> None:
    with pytest.raises(ValueError):
        PolicyScope(category="user")
    with pytest.raises(ValueError):
        PolicyScope(category="group")


def test_every_rule_reachable_exactly_once() -> None:
    store = PolicyStore()
    for index in range(3):
        store.commit(_rule(f"d{index}"), DEFAULT_SCOPE)
        store.commit(_rule(f"u{index}"), PolicyScope(category="user", uid=index))
        store.commit(_rule(f"g{index}"), PolicyScope(category="group", gid=index))
    names = [rule.name for rule in store.rules()]
    assert len(names) == len(store) == 9
    assert len(set(names)) == 9


def test_free_twice_leaves_store_empty() -> None:
    store = PolicyStore()
    store.commit(_rule("d"), DEFAULT_SCOPE)
    store.commit(_rule("u"), PolicyScope(category="user", uid=1))
    store.commit(_rule("g"), PolicyScope(category="group", gid=2))

    free_policy(store)
    assert store.is_empty
    assert store.default_rules() == []
    assert store.users() == []
    assert store.groups() == []

    free_policy(store)
    assert store.is_empty
    assert list(store.rules()) == []


def test_free_empty_and_missing_store() -> None:
    store = PolicyStore()
    free_policy(store)
    free_policy(None)
    assert len(store) == 0


def test_free_after_aborted_parse() -> None:
    store = PolicyStore()
    resolver = StaticIdentityResolver(users={"alice": 1000})
    doc = (
        '<busconfig><policy user="alice"><allow own="a"/></policy>'
        '<policy context="default"><allow own="b"/><allow send_type="bogus"/>'
        "</policy></busconfig>"
    )
    with pytest.raises(PolicyGrammarError):
        parse_document(store, doc, resolver=resolver)
    assert len(store) == 2

    free_policy(store)
    assert store.is_empty


def test_store_is_reusable_after_free() -> None:
    store = PolicyStore()
    rule = _rule("again")
    store.commit(rule, DEFAULT_SCOPE)
    free_policy(store)
    store.commit(rule, DEFAULT_SCOPE)
    assert [r.name for r in store.default_rules()] == ["again"]


def test_rule_describe_lines() -> None:
    rule = PolicyRule(
        kind=RuleKind.DENY,
        rule_class=RuleClass.SEND,
        interface="org.foo.Bar",
        member="Frob",
        name="org.foo",
        subject_uid=1000,
    )
    assert rule.describe(user_name="alice") == [
        "Type: deny",
        "Class: send",
        "Interface: org.foo.Bar",
        "Member: Frob",
        "Name: org.foo",
        "User: alice",
    ]
    assert rule.describe()[-1] == "User: n/a"


def test_numeric_principals_must_be_ascii_digits() -> None:
    resolver = SystemIdentityResolver()
    assert parse_numeric_id(" 1000 ") == 1000
    assert parse_numeric_id("²") is None
    assert parse_numeric_id("٣") is None
    assert resolver.user_id("²") is None
    assert StaticIdentityResolver().group_id("٣") is None
