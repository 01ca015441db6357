"""체크포인트 저장소와 LangGraph 체크포인터 테스트"""

import operator
from typing import Annotated, List, TypedDict

import pytest
from langgraph.checkpoint.base import empty_checkpoint
from langgraph.graph import StateGraph, START, END

from deer_agent.checkpoints import (
    FileCheckPointStore,
    GracefulShutdownStoreManager,
    InMemoryCheckPointStore,
    KVCheckpointSaver,
    create_checkpointer,
)
from deer_agent.config import DeerSettings


class TestInMemoryStore:
    """메모리 저장소 테스트"""

    def test_set_get_delete(self):
        store = InMemoryCheckPointStore()
        store.set("a", b"1")

        assert store.get("a") == b"1"
        assert store.list_ids() == ["a"]

        store.delete("a")
        store.delete("a")  # 없는 ID 삭제는 무시
        assert store.get("a") is None
        assert store.list_ids() == []


class TestFileStore:
    """파일 저장소 테스트"""

    def test_creates_directory(self, tmp_path):
        base_dir = tmp_path / "nested" / "checkpoints"
        FileCheckPointStore(str(base_dir))
        assert base_dir.is_dir()

    def test_set_get_with_prefix(self, tmp_path):
        store = FileCheckPointStore(str(tmp_path))
        store.set("thread-1", b"data")

        assert (tmp_path / "deer_checkpoint_thread-1").read_bytes() == b"data"
        assert store.get("thread-1") == b"data"
        assert store.get("missing") is None

    def test_overwrite_leaves_no_temp_file(self, tmp_path):
        store = FileCheckPointStore(str(tmp_path))
        store.set("t", b"old")
        store.set("t", b"new")

        assert store.get("t") == b"new"
        assert not list(tmp_path.glob("*.tmp"))

    def test_list_ids_ignores_temp_and_foreign_files(self, tmp_path):
        store = FileCheckPointStore(str(tmp_path))
        store.set("b", b"2")
        store.set("a", b"1")
        (tmp_path / "deer_checkpoint_c.tmp").write_bytes(b"partial")
        (tmp_path / "other.txt").write_text("x")

        assert store.list_ids() == ["a", "b"]

    def test_list_ids_with_prefix(self, tmp_path):
        store = FileCheckPointStore(str(tmp_path))
        store.set("t1.c.x", b"1")
        store.set("t1.w.x", b"2")
        store.set("t2.c.x", b"3")

        assert store.list_ids("t1.") == ["t1.c.x", "t1.w.x"]
        assert InMemoryCheckPointStore().list_ids("t1.") == []

    def test_delete(self, tmp_path):
        store = FileCheckPointStore(str(tmp_path))
        store.set("t", b"1")
        store.delete("t")
        store.delete("t")
        assert store.get("t") is None


class TestGracefulShutdownStoreManager:
    """우아한 종료 관리자 테스트"""

    def test_write_through(self, tmp_path):
        file_store = FileCheckPointStore(str(tmp_path))
        manager = GracefulShutdownStoreManager(file_store)
        manager.set("t", b"1")

        assert file_store.get("t") == b"1"
        assert manager.get("t") == b"1"
        assert manager.list_ids() == ["t"]

    def test_flush_restores_cached_entries(self, tmp_path):
        file_store = FileCheckPointStore(str(tmp_path))
        manager = GracefulShutdownStoreManager(file_store)
        manager.set("t1", b"1")
        manager.set("t2", b"2")
        (tmp_path / "deer_checkpoint_t1").unlink()

        assert manager.flush_to_file() == 2
        assert file_store.get("t1") == b"1"

    def test_clear_cache(self, tmp_path):
        manager = GracefulShutdownStoreManager(FileCheckPointStore(str(tmp_path)))
        manager.set("t", b"1")
        manager.clear_cache()

        assert manager.flush_to_file() == 0
        assert manager.get("t") == b"1"

    def test_delete_removes_cache_and_file(self, tmp_path):
        manager = GracefulShutdownStoreManager(FileCheckPointStore(str(tmp_path)))
        manager.set("t", b"1")
        manager.delete("t")

        assert manager.get("t") is None
        assert manager.flush_to_file() == 0

    def test_close_flushes(self, tmp_path):
        file_store = FileCheckPointStore(str(tmp_path))
        manager = GracefulShutdownStoreManager(file_store)
        manager.set("t", b"1")
        (tmp_path / "deer_checkpoint_t").unlink()

        manager.close()
        assert file_store.get("t") == b"1"


class CounterState(TypedDict):
    count: int
    log: Annotated[List[str], operator.add]


def _counter_graph(checkpointer):
    def increment(state: CounterState):
        return {"count": state["count"] + 1, "log": [f"step-{state['count']}"]}

    workflow = StateGraph(CounterState)
    workflow.add_node("increment", increment)
    workflow.add_edge(START, "increment")
    workflow.add_edge("increment", END)
    return workflow.compile(checkpointer=checkpointer)


class CountingStore(InMemoryCheckPointStore):
    """기록된 바이트 수를 세는 메모리 저장소"""

    def __init__(self):
        super().__init__()
        self.bytes_written = 0

    def set(self, checkpoint_id: str, data: bytes) -> None:
        self.bytes_written += len(data)
        super().set(checkpoint_id, data)


class TestKVCheckpointSaver:
    """CheckPointStore 기반 체크포인터 테스트"""

    def _config(self, thread_id="t1"):
        return {"configurable": {"thread_id": thread_id, "checkpoint_ns": ""}}

    def test_put_and_get_tuple(self):
        saver = KVCheckpointSaver(InMemoryCheckPointStore())
        checkpoint = empty_checkpoint()

        saved_config = saver.put(self._config(), checkpoint, {"source": "input", "step": -1}, {})
        loaded = saver.get_tuple(self._config())

        assert saved_config["configurable"]["checkpoint_id"] == checkpoint["id"]
        assert loaded.checkpoint["id"] == checkpoint["id"]
        assert loaded.metadata["source"] == "input"
        assert loaded.parent_config is None
        assert loaded.pending_writes == []

    def test_missing_thread_returns_none(self):
        saver = KVCheckpointSaver(InMemoryCheckPointStore())
        assert saver.get_tuple(self._config("unknown")) is None

    def test_latest_checkpoint_and_parent(self):
        saver = KVCheckpointSaver(InMemoryCheckPointStore())
        first = empty_checkpoint()
        first_config = saver.put(self._config(), first, {"step": 0}, {})
        second = empty_checkpoint()
        saver.put(first_config, second, {"step": 1}, {})

        latest = saver.get_tuple(self._config())

        assert latest.checkpoint["id"] == second["id"]
        assert latest.parent_config["configurable"]["checkpoint_id"] == first["id"]

        by_id = saver.get_tuple(first_config)
        assert by_id.checkpoint["id"] == first["id"]

    def test_put_writes_deduplicates_regular_channels(self):
        saver = KVCheckpointSaver(InMemoryCheckPointStore())
        config = saver.put(self._config(), empty_checkpoint(), {}, {})

        saver.put_writes(config, [("count", 1), ("log", ["a"])], task_id="task-1")
        saver.put_writes(config, [("count", 99)], task_id="task-1")

        writes = saver.get_tuple(config).pending_writes
        assert ("task-1", "count", 1) in writes
        assert len(writes) == 2

    def test_list_with_filter_and_limit(self):
        saver = KVCheckpointSaver(InMemoryCheckPointStore())
        config = saver.put(self._config(), empty_checkpoint(), {"step": 0}, {})
        config = saver.put(config, empty_checkpoint(), {"step": 1}, {})
        saver.put(config, empty_checkpoint(), {"step": 2}, {})

        steps = [item.metadata["step"] for item in saver.list(self._config())]
        assert steps == [2, 1, 0]

        assert [i.metadata["step"] for i in saver.list(self._config(), filter={"step": 1})] == [1]
        assert len(list(saver.list(self._config(), limit=2))) == 2
        assert len(list(saver.list(None))) == 3

    def test_list_before(self):
        saver = KVCheckpointSaver(InMemoryCheckPointStore())
        config = saver.put(self._config(), empty_checkpoint(), {"step": 0}, {})
        latest = saver.put(config, empty_checkpoint(), {"step": 1}, {})

        older = list(saver.list(self._config(), before=latest))
        assert [i.metadata["step"] for i in older] == [0]

    def test_delete_thread(self):
        store = InMemoryCheckPointStore()
        saver = KVCheckpointSaver(store)
        config = saver.put(self._config(), empty_checkpoint(), {}, {})
        saver.put_writes(config, [("count", 1)], task_id="task")
        saver.put(self._config("t2"), empty_checkpoint(), {}, {})

        saver.delete_thread("t1")

        assert saver.get_tuple(self._config()) is None
        assert saver.get_tuple(self._config("t2")) is not None
        assert len(store.list_ids()) == 1

    def test_channel_values_stored_per_version(self):
        saver = KVCheckpointSaver(InMemoryCheckPointStore())
        checkpoint = empty_checkpoint()
        checkpoint["channel_values"] = {"count": 1, "log": ["a"]}
        checkpoint["channel_versions"] = {"count": 1, "log": 1}
        config = saver.put(self._config(), checkpoint, {}, {"count": 1, "log": 1})

        # log는 바뀌지 않고 count만 새 버전으로 기록
        second = empty_checkpoint()
        second["channel_values"] = {"count": 2, "log": ["a"]}
        second["channel_versions"] = {"count": 2, "log": 1}
        saver.put(config, second, {}, {"count": 2})

        assert saver.get_tuple(self._config()).checkpoint["channel_values"] == {"count": 2, "log": ["a"]}
        assert saver.get_tuple(config).checkpoint["channel_values"] == {"count": 1, "log": ["a"]}

    @pytest.mark.asyncio
    async def test_write_cost_does_not_grow_with_history(self):
        store = CountingStore()
        graph = _counter_graph(KVCheckpointSaver(store))
        config = {"configurable": {"thread_id": "long"}}

        written = []
        for count in range(3):
            before = store.bytes_written
            await graph.ainvoke({"count": count, "log": []}, config)
            written.append(store.bytes_written - before)

        assert written[2] < written[0] * 1.5
        assert len(list(KVCheckpointSaver(store).list(config))) > 3

    @pytest.mark.asyncio
    async def test_graph_state_survives_new_saver_instance(self, tmp_path):
        config = {"configurable": {"thread_id": "persist"}}
        first_store = GracefulShutdownStoreManager(FileCheckPointStore(str(tmp_path)))
        graph = _counter_graph(KVCheckpointSaver(first_store))
        await graph.ainvoke({"count": 0, "log": []}, config)
        await graph.ainvoke({"count": 5, "log": []}, config)
        first_store.close()

        restored = _counter_graph(KVCheckpointSaver(FileCheckPointStore(str(tmp_path))))
        snapshot = await restored.aget_state(config)

        assert snapshot.values["count"] == 6
        assert snapshot.values["log"] == ["step-0", "step-5"]

    @pytest.mark.asyncio
    async def test_async_interface(self):
        saver = KVCheckpointSaver(InMemoryCheckPointStore())
        config = await saver.aput(self._config(), empty_checkpoint(), {"step": 0}, {})
        await saver.aput_writes(config, [("count", 1)], task_id="task")

        loaded = await saver.aget_tuple(config)
        listed = [item async for item in saver.alist(self._config())]

        assert loaded.pending_writes == [("task", "count", 1)]
        assert len(listed) == 1

        await saver.adelete_thread("t1")
        assert await saver.aget_tuple(self._config()) is None


class TestCreateCheckpointer:
    """설정 기반 체크포인터 생성 테스트"""

    def test_memory_backend(self, settings):
        saver = create_checkpointer(settings)
        assert isinstance(saver.store, InMemoryCheckPointStore)

    def test_file_backend(self, tmp_path):
        settings = DeerSettings(_env_file=None, checkpoint_backend="file", checkpoint_dir=str(tmp_path / "cp"))
        saver = create_checkpointer(settings)

        assert isinstance(saver.store, GracefulShutdownStoreManager)
        assert (tmp_path / "cp").is_dir()
