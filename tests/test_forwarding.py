"""Tests for the forwarding machinery and capability tables."""

import pytest
from pyee import EventEmitter

from aluvia_playwright.browser.forwarding import (
    CAPABILITY_TABLES,
    Capabilities,
    EventMirror,
    ForwardedMethod,
    ForwardedProperty,
    ForwardingHandle,
    SessionHandle,
    capabilities_for,
    install_forwarding,
)
from aluvia_playwright.browser.handles import ResilientPage
from aluvia_playwright.browser.registry import prepare_handle_types


class Target:
    def __init__(self, name: str):
        self.name = name
        self.value = 0

    def greet(self, who: str) -> str:
        return f"{self.name} greets {who}"


CAPS = Capabilities(
    methods=frozenset({"greet", "_internal", "emit", "skip_me"}),
    properties=frozenset({"value", "name"}),
    reserved=frozenset({"skip_me"}),
)


def _handle_type() -> type:
    return type("TargetHandle", (ForwardingHandle,), {})


@pytest.mark.unit
class TestInstallForwarding:
    def test_installs_methods_and_properties(self):
        cls = _handle_type()

        installed = install_forwarding(cls, CAPS)

        assert installed == ["greet", "name", "value"]
        assert isinstance(vars(cls)["greet"], ForwardedMethod)
        assert isinstance(vars(cls)["value"], ForwardedProperty)

    def test_reserved_and_private_names_are_skipped(self):
        cls = _handle_type()
        install_forwarding(cls, CAPS)

        for name in ("_internal", "emit", "skip_me"):
            assert name not in vars(cls)

    def test_second_install_adds_nothing(self):
        cls = _handle_type()
        install_forwarding(cls, CAPS)

        assert install_forwarding(cls, CAPS) == []

    def test_existing_members_are_kept(self):
        def greet(self, who):
            return "own"

        cls = type("OwnGreet", (ForwardingHandle,), {"greet": greet})

        assert "greet" not in install_forwarding(cls, CAPS)
        assert cls(Target("a")).greet("b") == "own"

    def test_handle_types_prepared_once(self, registry):
        again = prepare_handle_types(registry.capabilities)

        assert all(names == [] for names in again.values())
        assert isinstance(vars(ResilientPage)["evaluate"], ForwardedMethod)
        assert not isinstance(vars(ResilientPage)["goto"], ForwardedMethod)


@pytest.mark.unit
class TestForwardingHandle:
    def test_calls_follow_rebind(self):
        cls = _handle_type()
        install_forwarding(cls, CAPS)
        handle = cls(Target("old"))

        greet = handle.greet
        handle.rebind(Target("new"))

        assert greet("you") == "new greets you"
        assert handle.greet("you") == "new greets you"

    def test_property_writes_hit_current_target(self):
        cls = _handle_type()
        install_forwarding(cls, CAPS)
        old, new = Target("old"), Target("new")
        handle = cls(old)

        assert handle.rebind(new) is old
        handle.value = 7

        assert new.value == 7
        assert old.value == 0
        assert handle.name == "new"

    def test_satisfies_session_handle_protocol(self):
        assert isinstance(_handle_type()(Target("t")), SessionHandle)


@pytest.mark.unit
class TestCapabilitiesFor:
    def test_picks_newest_eligible_table(self):
        assert capabilities_for("1.49.1").version == (1, 45)
        assert capabilities_for("1.44.0").version == (1, 40)

    def test_older_driver_falls_back_to_oldest(self):
        assert capabilities_for("1.30.0").version == min(CAPABILITY_TABLES)

    def test_newer_table_extends_older(self):
        old, new = CAPABILITY_TABLES[(1, 40)], CAPABILITY_TABLES[(1, 45)]

        assert old.page.methods < new.page.methods
        assert "clock" in new.page.properties
        assert "goto" in new.page.reserved

    def test_rejects_garbage_version(self):
        with pytest.raises(ValueError, match="Unrecognised"):
            capabilities_for("latest")


@pytest.mark.unit
class TestEventMirror:
    def test_relay_substitutes_owner_for_source(self):
        owner = object()
        source = EventEmitter()
        mirror = EventMirror(owner, frozenset({"load"}))
        mirror.bind(source)
        seen = []

        mirror.on("load", seen.append)
        source.emit("load", source)

        assert seen == [owner]

    def test_bind_moves_relays(self):
        first, second = EventEmitter(), EventEmitter()
        mirror = EventMirror(object(), frozenset({"request"}))
        mirror.bind(first)
        seen = []
        mirror.on("request", seen.append)

        mirror.bind(second)
        first.emit("request", "stale")
        second.emit("request", "fresh")

        assert seen == ["fresh"]
        assert first.listeners("request") == []

    def test_emit_uses_captured_primitive(self):
        mirror = EventMirror(object(), frozenset({"load"}))
        seen = []
        mirror.on("load", seen.append)

        mirror._emitter.emit = lambda *args: pytest.fail("emit resolved late")
        mirror.emit("load", 1)

        assert seen == [1]
