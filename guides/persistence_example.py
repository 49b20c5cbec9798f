"""Example showing pause, snapshot persistence and restore with SQLite.

Run it twice: the first run pauses halfway and exits, the second run picks up
the stored snapshots and finishes the remaining steps.
"""

import asyncio
import logging
import sys

from stepflow import Step, Work, Workflow, get_storage


def build(storage) -> Workflow:
    async def extract(source, ctx):
        print(f"extracting from {source}")
        return [1, 2, 3]

    async def transform(rows, ctx):
        print("transforming")
        await asyncio.sleep(1)
        return [row * 10 for row in rows]

    return Workflow(
        id="nightly-etl",
        storage=storage,
        works=[
            Work(
                id="etl",
                steps=[
                    Step(id="extract", run=extract),
                    Step(id="transform", run=transform),
                ],
            )
        ],
    )


async def main(url: str):
    storage = get_storage(url)
    workflow = build(storage)
    resuming = await workflow.restore() is not None
    run = asyncio.create_task(workflow.start("warehouse"))

    if not resuming:
        await asyncio.sleep(0.2)
        await workflow.pause()
        print("⏸️  Paused; run again to continue from the stored snapshot")
        run.cancel()
        return

    result = await run
    print(f"✅ {result.status.value}: {result.output[0].output}")
    await workflow.clear_snapshot()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "sqlite://stepflow.db"))
