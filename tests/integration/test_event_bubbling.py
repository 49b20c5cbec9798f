import asyncio

import pytest

from stepflow import RunStatus, Step, StepEvent, Work, WorkEvent, Workflow, WorkflowEvent


@pytest.mark.asyncio
async def test_full_event_stream_for_two_works():
    events = []
    workflow = Workflow(
        id="wf",
        works=[
            Work(id="a", steps=[Step(id="a1", run=lambda v, c: v), Step(id="a2", run=lambda v, c: v)]),
            Work(id="b", steps=[Step(id="b1", run=lambda v, c: v)]),
        ],
    )
    for enum in (StepEvent, WorkEvent, WorkflowEvent):
        for member in enum:
            if member.value.endswith("change"):
                continue
            workflow.on(member, lambda snapshot, name=member.value: events.append((name, snapshot.id)))

    await workflow.start(0)

    assert events[0] == ("workflow:start", "wf")
    assert events[-1] == ("workflow:success", "wf")
    for step_id in ("a1", "a2", "b1"):
        assert events.index(("step:start", step_id)) < events.index(("step:success", step_id))
    assert events.index(("step:success", "a1")) < events.index(("step:start", "a2"))
    assert events.index(("step:success", "a2")) < events.index(("work:success", "a"))
    assert events.index(("work:success", "a")) < events.index(("workflow:success", "wf"))
    assert events.index(("work:success", "b")) < events.index(("workflow:success", "wf"))


@pytest.mark.asyncio
async def test_failure_event_carries_error_at_every_level():
    failures = []

    def broken(value, ctx):
        raise KeyError("missing")

    workflow = Workflow(works=[Work(steps=[Step(run=broken)])])
    for name in ("step:failed", "work:failed", "workflow:failed"):
        workflow.on(name, lambda snapshot, name=name: failures.append((name, snapshot.error)))

    with pytest.raises(KeyError):
        await workflow.start()

    assert failures == [
        ("step:failed", "'missing'"),
        ("work:failed", "'missing'"),
        ("workflow:failed", "'missing'"),
    ]
    assert workflow.status == RunStatus.FAILED


@pytest.mark.asyncio
async def test_async_listeners_observe_pause_and_resume():
    seen = []
    entered = asyncio.Event()
    release = asyncio.Event()
    resumed = asyncio.Event()

    async def slow(value, ctx):
        entered.set()
        await release.wait()
        return value

    async def on_resume(snapshot):
        seen.append(snapshot.status)
        resumed.set()

    workflow = Workflow(works=[Work(steps=[Step(run=slow)])])
    workflow.on(WorkflowEvent.RESUME, on_resume)
    task = asyncio.create_task(workflow.start("x"))
    await entered.wait()

    await workflow.pause()
    await workflow.resume()
    await asyncio.wait_for(resumed.wait(), timeout=1)
    release.set()
    result = await task

    assert seen == [RunStatus.RUNNING]
    assert result.status == RunStatus.SUCCESS


@pytest.mark.asyncio
async def test_deleted_work_no_longer_bubbles():
    events = []
    work = Work(id="gone", steps=[Step(run=lambda v, c: v)])
    workflow = Workflow(works=[work])
    workflow.on("work:start", lambda snapshot: events.append(snapshot.id))

    workflow.delete("gone")
    await work.start()

    assert events == []
    assert workflow.status == RunStatus.PENDING
