"""CheckPointStore 기반 LangGraph 체크포인터

LangGraph의 BaseCheckpointSaver를 구현하여, 체크포인트와 쓰기 값, 채널 값을
각각 별도의 키로 CheckPointStore에 저장합니다. 한 번의 저장은 바뀐 채널과
해당 체크포인트만 기록하므로 스레드 기록이 길어져도 저장 비용이 늘지 않습니다.

키 구조 (각 구성요소는 URL-safe base64, 구분자는 "."):
    <thread>.c.<ns>.<checkpoint_id>        체크포인트 (채널 값 제외) + 메타데이터 + 부모 ID
    <thread>.w.<ns>.<checkpoint_id>        대기 중인 쓰기 목록
    <thread>.b.<ns>.<channel>.<version>    채널 값

값은 LangGraph 자체 직렬화기(serde.dumps_typed)로 인코딩한 뒤 base64로 보관합니다.
"""

import asyncio
import base64
import json
import logging
import threading
from typing import Any, AsyncIterator, Dict, Iterator, List, Optional, Sequence, Tuple

from langchain_core.runnables import RunnableConfig
from langgraph.checkpoint.base import (
    WRITES_IDX_MAP,
    BaseCheckpointSaver,
    ChannelVersions,
    Checkpoint,
    CheckpointMetadata,
    CheckpointTuple,
    get_checkpoint_id,
)

from .stores import CheckPointStore

logger = logging.getLogger(__name__)

CHECKPOINT_KIND = "c"
WRITES_KIND = "w"
BLOB_KIND = "b"
_EMPTY = "empty"


def _b64(value: str) -> str:
    return base64.urlsafe_b64encode(value.encode("utf-8")).decode("ascii")


def _unb64(value: str) -> str:
    return base64.urlsafe_b64decode(value.encode("ascii")).decode("utf-8")


def thread_prefix(thread_id: str) -> str:
    """스레드의 모든 키가 공유하는 접두사"""
    return f"{_b64(thread_id)}."


def make_key(kind: str, thread_id: str, checkpoint_ns: str, *parts: str) -> str:
    return ".".join([_b64(thread_id), kind, _b64(checkpoint_ns), *parts])


def parse_key(key: str) -> Tuple[str, str, str, str]:
    """키를 (thread_id, kind, checkpoint_ns, 나머지)로 분해합니다"""
    thread_part, kind, ns_part, rest = key.split(".", 3)
    return _unb64(thread_part), kind, _unb64(ns_part), rest


class KVCheckpointSaver(BaseCheckpointSaver):
    """키-값 저장소 위에서 동작하는 체크포인터

    Args:
        store: 체크포인트를 저장할 CheckPointStore
    """

    def __init__(self, store: CheckPointStore, *, serde=None):
        super().__init__(serde=serde)
        self.store = store
        self._lock = threading.RLock()

    # ---- 값 인코딩 ----

    def _encode(self, value: Any) -> List[str]:
        type_, data = self.serde.dumps_typed(value)
        return [type_, base64.b64encode(data).decode("ascii")]

    def _decode(self, encoded: List[str]) -> Any:
        type_, data = encoded
        return self.serde.loads_typed((type_, base64.b64decode(data)))

    def _read_json(self, key: str) -> Any:
        raw = self.store.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise RuntimeError(f"체크포인트 레코드 손상: {key}: {e}")

    def _write_json(self, key: str, value: Any) -> None:
        self.store.set(key, json.dumps(value).encode("utf-8"))

    def _blob_key(self, thread_id: str, checkpoint_ns: str, channel: str, version: Any) -> str:
        return make_key(BLOB_KIND, thread_id, checkpoint_ns, _b64(channel), _b64(str(version)))

    def _load_channel_values(self, thread_id: str, checkpoint_ns: str, versions: ChannelVersions) -> Dict[str, Any]:
        values = {}
        for channel, version in versions.items():
            blob = self._read_json(self._blob_key(thread_id, checkpoint_ns, channel, version))
            if blob is not None and blob[0] != _EMPTY:
                values[channel] = self._decode(blob)
        return values

    def _checkpoint_ids(self, thread_id: str, checkpoint_ns: str) -> List[str]:
        prefix = make_key(CHECKPOINT_KIND, thread_id, checkpoint_ns) + "."
        return [key[len(prefix):] for key in self.store.list_ids(prefix)]

    def _make_tuple(
        self,
        thread_id: str,
        checkpoint_ns: str,
        checkpoint_id: str,
        config: Optional[RunnableConfig] = None,
    ) -> Optional[CheckpointTuple]:
        saved = self._read_json(make_key(CHECKPOINT_KIND, thread_id, checkpoint_ns, checkpoint_id))
        if saved is None:
            return None
        writes = self._read_json(make_key(WRITES_KIND, thread_id, checkpoint_ns, checkpoint_id)) or []
        parent_checkpoint_id = saved.get("parent_checkpoint_id")

        if config is None:
            config = {
                "configurable": {
                    "thread_id": thread_id,
                    "checkpoint_ns": checkpoint_ns,
                    "checkpoint_id": checkpoint_id,
                }
            }
        parent_config = None
        if parent_checkpoint_id:
            parent_config = {
                "configurable": {
                    "thread_id": thread_id,
                    "checkpoint_ns": checkpoint_ns,
                    "checkpoint_id": parent_checkpoint_id,
                }
            }

        checkpoint = self._decode(saved["checkpoint"])
        checkpoint["channel_values"] = self._load_channel_values(
            thread_id, checkpoint_ns, checkpoint.get("channel_versions", {})
        )
        return CheckpointTuple(
            config=config,
            checkpoint=checkpoint,
            metadata=self._decode(saved["metadata"]),
            parent_config=parent_config,
            pending_writes=[
                (task_id, channel, self._decode(value))
                for task_id, _idx, channel, value, _task_path in writes
            ],
        )

    # ---- BaseCheckpointSaver 구현 ----

    def get_tuple(self, config: RunnableConfig) -> Optional[CheckpointTuple]:
        thread_id = config["configurable"]["thread_id"]
        checkpoint_ns = config["configurable"].get("checkpoint_ns", "")

        with self._lock:
            checkpoint_id = get_checkpoint_id(config)
            if checkpoint_id:
                return self._make_tuple(thread_id, checkpoint_ns, checkpoint_id, config)

            checkpoint_ids = self._checkpoint_ids(thread_id, checkpoint_ns)
            if not checkpoint_ids:
                return None
            # 체크포인트 ID는 시간순으로 정렬 가능 (uuid6)
            return self._make_tuple(thread_id, checkpoint_ns, max(checkpoint_ids))

    def list(
        self,
        config: Optional[RunnableConfig],
        *,
        filter: Optional[Dict[str, Any]] = None,
        before: Optional[RunnableConfig] = None,
        limit: Optional[int] = None,
    ) -> Iterator[CheckpointTuple]:
        if config is not None:
            prefix = thread_prefix(config["configurable"]["thread_id"])
            config_ns = config["configurable"].get("checkpoint_ns")
            config_checkpoint_id = get_checkpoint_id(config)
        else:
            prefix = ""
            config_ns = None
            config_checkpoint_id = None
        before_id = get_checkpoint_id(before) if before else None

        with self._lock:
            keys = []
            for key in self.store.list_ids(prefix):
                thread_id, kind, checkpoint_ns, checkpoint_id = parse_key(key)
                if kind != CHECKPOINT_KIND:
                    continue
                if config_ns is not None and checkpoint_ns != config_ns:
                    continue
                if config_checkpoint_id and checkpoint_id != config_checkpoint_id:
                    continue
                if before_id and checkpoint_id >= before_id:
                    continue
                keys.append((thread_id, checkpoint_ns, checkpoint_id))

        keys.sort(key=lambda item: item[2], reverse=True)
        for thread_id, checkpoint_ns, checkpoint_id in keys:
            with self._lock:
                item = self._make_tuple(thread_id, checkpoint_ns, checkpoint_id)
            if item is None:
                continue
            if filter and not all(item.metadata.get(k) == v for k, v in filter.items()):
                continue

            if limit is not None:
                if limit <= 0:
                    return
                limit -= 1
            yield item

    def put(
        self,
        config: RunnableConfig,
        checkpoint: Checkpoint,
        metadata: CheckpointMetadata,
        new_versions: ChannelVersions,
    ) -> RunnableConfig:
        thread_id = config["configurable"]["thread_id"]
        checkpoint_ns = config["configurable"].get("checkpoint_ns", "")
        parent_checkpoint_id = config["configurable"].get("checkpoint_id")

        stored = dict(checkpoint)
        values = stored.pop("channel_values", {})

        with self._lock:
            # 이번 체크포인트에서 바뀐 채널 값만 기록
            for channel, version in new_versions.items():
                blob = self._encode(values[channel]) if channel in values else [_EMPTY, ""]
                self._write_json(self._blob_key(thread_id, checkpoint_ns, channel, version), blob)

            self._write_json(make_key(CHECKPOINT_KIND, thread_id, checkpoint_ns, checkpoint["id"]), {
                "checkpoint": self._encode(stored),
                "metadata": self._encode(metadata),
                "parent_checkpoint_id": parent_checkpoint_id,
            })

        logger.debug(f"체크포인트 저장: thread_id={thread_id}, checkpoint_id={checkpoint['id']}")
        return {
            "configurable": {
                "thread_id": thread_id,
                "checkpoint_ns": checkpoint_ns,
                "checkpoint_id": checkpoint["id"],
            }
        }

    def put_writes(
        self,
        config: RunnableConfig,
        writes: Sequence[Tuple[str, Any]],
        task_id: str,
        task_path: str = "",
    ) -> None:
        thread_id = config["configurable"]["thread_id"]
        checkpoint_ns = config["configurable"].get("checkpoint_ns", "")
        checkpoint_id = config["configurable"]["checkpoint_id"]
        key = make_key(WRITES_KIND, thread_id, checkpoint_ns, checkpoint_id)

        with self._lock:
            outer_writes = self._read_json(key) or []
            existing = {(w[0], w[1]): pos for pos, w in enumerate(outer_writes)}

            for index, (channel, value) in enumerate(writes):
                idx = WRITES_IDX_MAP.get(channel, index)
                entry = [task_id, idx, channel, self._encode(value), task_path]
                # 특수 채널(음수 idx)은 덮어쓰고, 일반 쓰기는 최초 기록만 유지
                if (task_id, idx) in existing:
                    if idx >= 0:
                        continue
                    outer_writes[existing[(task_id, idx)]] = entry
                else:
                    existing[(task_id, idx)] = len(outer_writes)
                    outer_writes.append(entry)

            self._write_json(key, outer_writes)

    def delete_thread(self, thread_id: str) -> None:
        with self._lock:
            for key in self.store.list_ids(thread_prefix(thread_id)):
                self.store.delete(key)

    # ---- 비동기 버전 (동기 저장소 I/O는 스레드에서 실행) ----

    async def aget_tuple(self, config: RunnableConfig) -> Optional[CheckpointTuple]:
        return await asyncio.to_thread(self.get_tuple, config)

    async def alist(
        self,
        config: Optional[RunnableConfig],
        *,
        filter: Optional[Dict[str, Any]] = None,
        before: Optional[RunnableConfig] = None,
        limit: Optional[int] = None,
    ) -> AsyncIterator[CheckpointTuple]:
        items = await asyncio.to_thread(
            lambda: list(self.list(config, filter=filter, before=before, limit=limit))
        )
        for item in items:
            yield item

    async def aput(
        self,
        config: RunnableConfig,
        checkpoint: Checkpoint,
        metadata: CheckpointMetadata,
        new_versions: ChannelVersions,
    ) -> RunnableConfig:
        return await asyncio.to_thread(self.put, config, checkpoint, metadata, new_versions)

    async def aput_writes(
        self,
        config: RunnableConfig,
        writes: Sequence[Tuple[str, Any]],
        task_id: str,
        task_path: str = "",
    ) -> None:
        await asyncio.to_thread(self.put_writes, config, writes, task_id, task_path)

    async def adelete_thread(self, thread_id: str) -> None:
        await asyncio.to_thread(self.delete_thread, thread_id)

    def close(self) -> None:
        """하위 저장소를 닫습니다 (파일 저장소는 flush 후 닫힘)"""
        self.store.close()
