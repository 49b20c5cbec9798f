"""Simple example showing a workflow with two parallel works."""

import asyncio

from stepflow import Step, Work, Workflow


async def fetch(order_id, ctx):
    await asyncio.sleep(0.1)
    return {"order": order_id, "items": 3}


def price(order, ctx):
    return {**order, "total": order["items"] * 9.5}


async def notify(order_id, ctx):
    return f"notified customer for {order_id}"


async def main():
    """Run billing and notification side by side."""
    workflow = Workflow(
        name="order-processing",
        works=[
            Work(name="billing", steps=[Step(name="fetch", run=fetch), Step(name="price", run=price)]),
            Work(name="notification", steps=[Step(name="notify", run=notify)]),
        ],
    )

    # Print every status change as it bubbles up
    for event in ("workflow:start", "work:start", "step:success", "workflow:success"):
        workflow.on(event, lambda snapshot, event=event: print(f"{event:<18} {snapshot.name}"))

    result = await workflow.start("order-42")

    print(f"✅ Workflow finished: {result.status.value}")
    for work in result.output:
        print(f"📋 {work.name}: {work.output}")


if __name__ == "__main__":
    asyncio.run(main())
