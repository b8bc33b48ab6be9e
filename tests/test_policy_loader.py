from pathlib import Path

import pytest

from buspolicy.config.schema import PolicySourcesConfig
from buspolicy.policy.dump import format_policy
from buspolicy.policy.identity import StaticIdentityResolver
from buspolicy.policy.loader import list_dropin_files, load_file, load_policy
from buspolicy.policy.parser import PolicyGrammarError, PolicyIOError, PolicySyntaxError
from buspolicy.policy.store import PolicyStore

RESOLVER = StaticIdentityResolver(users={"alice": 1000}, groups={"adm": 4})


def _doc(body: str, scope: str = 'context="default"') -> str:
    return f'<?xml version="1.0"?>\n<busconfig>\n<policy {scope}>\n{body}\n</policy>\n</busconfig>\n'


def _config(root: Path) -> PolicySourcesConfig:
    return PolicySourcesConfig(
        base_path=str(root / "system.conf"),
        local_path=str(root / "system-local.conf"),
        dropin_dir=str(root / "system.d"),
    )


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


def test_load_order_base_local_then_sorted_dropins(tmp_path: Path) -> None:
    cfg = _config(tmp_path)
    base = _write(cfg.base_file, _doc('<allow send_interface="base"/>'))
    local = _write(cfg.local_file, _doc('<allow send_interface="local"/>'))
    b = _write(cfg.dropin_path / "b.conf", _doc('<allow send_interface="b"/>'))
    a = _write(cfg.dropin_path / "a.conf", _doc('<allow send_interface="a"/>'))
    _write(cfg.dropin_path / "c.txt", _doc('<allow send_interface="txt"/>'))
    _write(cfg.dropin_path / ".hidden.conf", _doc('<allow send_interface="hidden"/>'))
    (cfg.dropin_path / "dir.conf").mkdir()

    store = PolicyStore()
    loaded = load_policy(store, cfg, resolver=RESOLVER)

    assert loaded == [base, local, a, b]
    assert [rule.interface for rule in store.default_rules()] == ["b", "a", "local", "base"]


def test_missing_base_and_local_are_not_errors(tmp_path: Path) -> None:
    cfg = _config(tmp_path)
    fragment = _write(cfg.dropin_path / "only.conf", _doc('<allow own="org.only"/>'))

    store = PolicyStore()
    assert load_policy(store, cfg, resolver=RESOLVER) == [fragment]
    assert [rule.name for rule in store.default_rules()] == ["org.only"]


def test_missing_dropin_directory_is_an_error(tmp_path: Path) -> None:
    cfg = _config(tmp_path)
    _write(cfg.base_file, _doc('<allow own="org.base"/>'))

    store = PolicyStore()
    with pytest.raises(PolicyIOError) as excinfo:
        load_policy(store, cfg, resolver=RESOLVER)
    assert excinfo.value.path == str(cfg.dropin_path)
    assert [rule.name for rule in store.default_rules()] == ["org.base"]


def test_fragment_error_keeps_earlier_rules_and_stops(tmp_path: Path) -> None:
    cfg = _config(tmp_path)
    _write(cfg.base_file, _doc('<allow own="org.base"/>'))
    bad = _write(cfg.dropin_path / "10-bad.conf", _doc('<allow own="org.partial"/>\n<deny/>'))
    _write(cfg.dropin_path / "20-later.conf", _doc('<allow own="org.later"/>'))

    store = PolicyStore()
    with pytest.raises(PolicyGrammarError) as excinfo:
        load_policy(store, cfg, resolver=RESOLVER)

    assert excinfo.value.path == str(bad)
    assert excinfo.value.line == 5
    assert excinfo.value.code == "class-unset"
    assert [rule.name for rule in store.default_rules()] == ["org.partial", "org.base"]


def test_fragment_syntax_error_carries_path(tmp_path: Path) -> None:
    cfg = _config(tmp_path)
    bad = _write(cfg.dropin_path / "broken.conf", "<busconfig><policy context='default'")

    with pytest.raises(PolicySyntaxError) as excinfo:
        load_policy(PolicyStore(), cfg, resolver=RESOLVER)
    assert excinfo.value.path == str(bad)


def test_fragments_add_user_exceptions_ahead_of_base(tmp_path: Path) -> None:
    cfg = _config(tmp_path)
    _write(cfg.base_file, _doc('<deny own="org.svc"/>', scope='user="alice"'))
    _write(cfg.dropin_path / "svc.conf", _doc('<allow own="org.svc"/>', scope='user="alice"'))

    store = PolicyStore()
    load_policy(store, cfg, resolver=RESOLVER)
    kinds = [rule.kind.value for rule in store.user_rules(1000)]
    assert kinds == ["allow", "deny"]


def test_unreadable_source_is_io_error(tmp_path: Path) -> None:
    cfg = _config(tmp_path)
    cfg.base_file.mkdir(parents=True)
    cfg.dropin_path.mkdir()

    with pytest.raises(PolicyIOError) as excinfo:
        load_policy(PolicyStore(), cfg, resolver=RESOLVER)
    assert excinfo.value.path == str(cfg.base_file)


def test_load_file_reports_counts(tmp_path: Path) -> None:
    path = _write(tmp_path / "one.conf", _doc('<allow own="a"/><deny own="b"/>'))
    store = PolicyStore()
    assert load_file(store, path, resolver=RESOLVER) == 2
    assert load_file(store, tmp_path / "missing.conf", resolver=RESOLVER) is None
    assert len(store) == 2


def test_list_dropin_files_custom_suffix(tmp_path: Path) -> None:
    _write(tmp_path / "b.policy", "")
    _write(tmp_path / "a.policy", "")
    _write(tmp_path / "a.conf", "")
    assert [path.name for path in list_dropin_files(tmp_path, ".policy")] == ["a.policy", "b.policy"]


def test_sources_config_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BUSPOLICY_DROPIN_DIR", str(tmp_path / "d"))
    monkeypatch.setenv("BUSPOLICY_DROPIN_SUFFIX", ".xml")
    cfg = PolicySourcesConfig()
    assert cfg.dropin_path == tmp_path / "d"
    assert cfg.dropin_suffix == ".xml"
    assert cfg.base_path == "/etc/dbus-1/system.conf"


def test_sources_config_rejects_bad_suffix() -> None:
    with pytest.raises(ValueError):
        PolicySourcesConfig(dropin_suffix="conf")


def test_format_policy_listing(tmp_path: Path) -> None:
    cfg = _config(tmp_path)
    _write(cfg.base_file, _doc('<allow send_interface="org.foo.Bar" send_type="method_call"/>'))
    _write(
        cfg.dropin_path / "users.conf",
        "<busconfig>"
        '<policy user="alice"><deny own="org.foo.Service"/><allow own="org.foo.Other"/></policy>'
        '<policy group="adm"><allow receive_sender="org.foo"/></policy>'
        "</busconfig>",
    )
    store = PolicyStore()
    load_policy(store, cfg, resolver=RESOLVER)

    assert format_policy(store, resolver=RESOLVER) == [
        "→ Default Items:",
        "Type: allow",
        "Class: send",
        "Interface: org.foo.Bar",
        "Message Type: method_call",
        "→ Mandatory Items:",
        "→ Group Items:",
        "Item for adm",
        "Type: allow",
        "Class: recv",
        "Name: org.foo",
        "Group: adm",
        "→ User Items:",
        "Item for alice",
        "Type: allow",
        "Class: own",
        "Name: org.foo.Other",
        "User: alice",
        "--",
        "Type: deny",
        "Class: own",
        "Name: org.foo.Service",
        "User: alice",
    ]
