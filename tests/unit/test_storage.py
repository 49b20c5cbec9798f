import pytest

from stepflow.models import RunStatus, StepSnapshot, WorkflowSnapshot, WorkSnapshot
from stepflow.storage import (
    ListableStorage,
    MemoryStorage,
    SQLiteStorage,
    Storage,
    get_storage,
)


def _workflow_snapshot() -> WorkflowSnapshot:
    return WorkflowSnapshot(
        id="wf",
        status=RunStatus.SUCCESS,
        input={"n": 5},
        works=[
            WorkSnapshot(
                id="w1",
                status=RunStatus.SUCCESS,
                output=12,
                steps=[StepSnapshot(id="s1", status=RunStatus.SUCCESS, output=12)],
            )
        ],
    )


@pytest.mark.asyncio
async def test_memory_storage_crud():
    storage = MemoryStorage()
    snapshot = _workflow_snapshot()

    assert await storage.get("workflow:wf") is None
    await storage.set("workflow:wf", snapshot)
    await storage.set("step:s1", {"type": "step", "id": "s1"})

    assert await storage.get("workflow:wf") == snapshot
    assert isinstance(await storage.get("step:s1"), StepSnapshot)
    assert await storage.keys() == ["step:s1", "workflow:wf"]
    assert await storage.keys("step:") == ["step:s1"]

    await storage.delete("workflow:wf")
    await storage.delete("workflow:wf")
    assert await storage.get("workflow:wf") is None


@pytest.mark.asyncio
async def test_memory_storage_keeps_its_own_copy():
    storage = MemoryStorage()
    snapshot = StepSnapshot(id="s1", input={"items": [1]}, output={"total": 1})

    await storage.set("step:s1", snapshot)
    snapshot.input["items"].append(2)
    fetched = await storage.get("step:s1")
    fetched.output["total"] = 99

    stored = await storage.get("step:s1")
    assert stored.input == {"items": [1]}
    assert stored.output == {"total": 1}


@pytest.mark.asyncio
async def test_sqlite_storage_crud(tmp_path):
    storage = SQLiteStorage(tmp_path / "snapshots.db")
    snapshot = _workflow_snapshot()

    await storage.set("workflow:wf", snapshot)
    await storage.set("work:w1", snapshot.works[0])
    await storage.set("work:w_2", WorkSnapshot(id="w_2"))

    loaded = await storage.get("workflow:wf")
    assert isinstance(loaded, WorkflowSnapshot)
    assert loaded == snapshot
    assert loaded.works[0].steps[0].output == 12

    assert await storage.keys("work:") == ["work:w1", "work:w_2"]
    # LIKE wildcards in the prefix are matched literally
    assert await storage.keys("work:w_") == ["work:w_2"]

    await storage.delete("work:w1")
    assert await storage.get("work:w1") is None
    storage.close()


@pytest.mark.asyncio
async def test_sqlite_storage_survives_reopen(tmp_path):
    path = tmp_path / "snapshots.db"
    first = SQLiteStorage(path)
    await first.set("step:s1", StepSnapshot(id="s1", status=RunStatus.PAUSED, input=3))
    await first.set("step:s1", StepSnapshot(id="s1", status=RunStatus.SUCCESS, output=4))
    first.close()

    second = SQLiteStorage(path)
    loaded = await second.get("step:s1")
    assert loaded.status == RunStatus.SUCCESS
    assert loaded.output == 4
    assert await second.keys() == ["step:s1"]
    second.close()


def test_bundled_backends_satisfy_protocols(tmp_path):
    memory = MemoryStorage()
    sqlite = SQLiteStorage(tmp_path / "p.db")

    assert isinstance(memory, ListableStorage)
    assert isinstance(sqlite, ListableStorage)
    assert isinstance(memory, Storage)
    sqlite.close()


def test_get_storage_defaults_to_memory(monkeypatch, tmp_path):
    monkeypatch.delenv("STEPFLOW_STORAGE_URL", raising=False)
    monkeypatch.delenv("STEPFLOW_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)

    first = get_storage()
    second = get_storage("memory://")

    assert isinstance(first, MemoryStorage)
    assert isinstance(second, MemoryStorage)
    assert first is not second


def test_get_storage_sqlite_url(tmp_path):
    storage = get_storage(f"sqlite://{tmp_path / 'snap.db'}")
    assert isinstance(storage, SQLiteStorage)
    assert storage.db_path == str(tmp_path / "snap.db")
    storage.close()


def test_get_storage_reads_env(monkeypatch, tmp_path):
    monkeypatch.setenv("STEPFLOW_STORAGE_URL", f"sqlite://{tmp_path / 'env.db'}")
    storage = get_storage()
    assert isinstance(storage, SQLiteStorage)
    storage.close()


def test_get_storage_rejects_unknown_scheme():
    with pytest.raises(ValueError):
        get_storage("mongodb://localhost")


def test_redis_storage_construction():
    pytest.importorskip("redis")
    from stepflow.storage.redis import RedisStorage

    storage = get_storage("redis://example:6380/2")
    assert isinstance(storage, RedisStorage)
    assert storage.url == "redis://example:6380/2"

    direct = RedisStorage(host="cache", port=6390, prefix="test:")
    assert direct.host == "cache"
    assert direct.prefix == "test:"


@pytest.mark.asyncio
async def test_redis_storage_disconnect_closes_client():
    pytest.importorskip("redis")
    from stepflow.storage.redis import RedisStorage, redis

    storage = RedisStorage(host="cache")
    # never connected, so closing touches no socket
    storage._redis = redis.Redis(host="cache", decode_responses=True)

    await storage.disconnect()
    assert storage._redis is None


def test_postgres_storage_construction():
    pytest.importorskip("asyncpg")
    from stepflow.storage.postgres import PostgresStorage

    storage = get_storage("postgresql://user:pw@localhost/db")
    assert isinstance(storage, PostgresStorage)
