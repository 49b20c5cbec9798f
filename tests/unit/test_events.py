import asyncio
import logging

import pytest

from stepflow.events import EventHub, Lifecycle, StepEvent, WorkEvent, event_for


def test_listeners_run_in_registration_order():
    hub = EventHub()
    calls = []
    hub.on(StepEvent.START, lambda payload: calls.append(("a", payload)))
    hub.on("step:start", lambda payload: calls.append(("b", payload)))

    hub.emit("step:start", 1)
    hub.emit(StepEvent.START, 2)

    assert calls == [("a", 1), ("b", 1), ("a", 2), ("b", 2)]


def test_once_fires_a_single_time():
    hub = EventHub()
    calls = []
    hub.once(WorkEvent.SUCCESS, calls.append)

    hub.emit(WorkEvent.SUCCESS, "first")
    hub.emit(WorkEvent.SUCCESS, "second")

    assert calls == ["first"]
    assert hub.listeners(WorkEvent.SUCCESS) == []


def test_off_variants():
    hub = EventHub()
    calls = []

    def a(payload):
        calls.append("a")

    def b(payload):
        calls.append("b")

    hub.on("step:stop", a)
    hub.on("step:stop", b)
    hub.on("step:pause", a)

    hub.off("step:stop", a)
    hub.emit("step:stop")
    assert calls == ["b"]

    hub.off("step:stop")
    hub.emit("step:stop")
    assert calls == ["b"]

    hub.off()
    hub.emit("step:pause")
    assert calls == ["b"]

    # removing something that was never registered is harmless
    hub.off("step:resume", a)


def test_failing_listener_does_not_block_others(caplog):
    hub = EventHub()
    calls = []

    def broken(payload):
        raise RuntimeError("boom")

    hub.on("step:failed", broken)
    hub.on("step:failed", calls.append)

    with caplog.at_level(logging.ERROR, logger="stepflow.events"):
        hub.emit("step:failed", "payload")

    assert calls == ["payload"]
    assert "step:failed" in caplog.text


@pytest.mark.asyncio
async def test_async_listener_is_scheduled():
    hub = EventHub()
    seen = asyncio.Event()

    async def listener(payload):
        assert payload == "done"
        seen.set()

    hub.on("workflow:success", listener)
    hub.emit("workflow:success", "done")

    await asyncio.wait_for(seen.wait(), timeout=1)


def test_event_for_maps_level_and_lifecycle():
    assert event_for("step", Lifecycle.START) is StepEvent.START
    assert event_for("work", Lifecycle.CHANGE) == "work:change"
    assert event_for("workflow", Lifecycle.FAILED).value == "workflow:failed"
