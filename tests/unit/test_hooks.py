"""Unit tests for the Hooks registry."""

from __future__ import annotations

import logging

from context_storage.hooks import AFTER_SAVE, BEFORE_SAVE, Hooks


def test_dispatch_passes_payload():
    hooks = Hooks()
    received = []
    hooks.on(AFTER_SAVE, lambda **payload: received.append(payload))

    hooks.dispatch(AFTER_SAVE, success=True)

    assert received == [{"success": True}]


def test_listeners_run_in_registration_order():
    hooks = Hooks()
    order = []
    hooks.on(BEFORE_SAVE, lambda **kwargs: order.append("first"))
    hooks.on(BEFORE_SAVE, lambda **kwargs: order.append("second"))

    hooks.dispatch(BEFORE_SAVE)

    assert order == ["first", "second"]


def test_off_removes_one_or_all():
    hooks = Hooks()

    def listener(**kwargs):
        pass

    def other(**kwargs):
        pass

    hooks.on(BEFORE_SAVE, listener)
    hooks.on(BEFORE_SAVE, other)

    hooks.off(BEFORE_SAVE, listener)
    assert hooks.listeners(BEFORE_SAVE) == [other]

    hooks.off(BEFORE_SAVE)
    assert hooks.listeners(BEFORE_SAVE) == []

    hooks.off("never_registered", listener)


def test_failing_listener_is_logged(caplog):
    hooks = Hooks()
    calls = []

    def broken(**kwargs):
        msg = "boom"
        raise ValueError(msg)

    hooks.on(AFTER_SAVE, broken)
    hooks.on(AFTER_SAVE, lambda **kwargs: calls.append(kwargs))

    with caplog.at_level(logging.WARNING, logger="context_storage.hooks"):
        hooks.dispatch(AFTER_SAVE, success=False)

    assert calls == [{"success": False}]
    assert "Hook listener for after_save failed" in caplog.text


def test_dispatch_without_listeners():
    Hooks().dispatch("unknown_event", anything=1)
