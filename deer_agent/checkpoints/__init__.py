"""
체크포인트 패키지

연구 워크플로우의 중단/재개를 위한 체크포인트 저장소와
LangGraph 체크포인터를 제공합니다.
"""

import logging

from .stores import (
    CheckPointStore,
    InMemoryCheckPointStore,
    FileCheckPointStore,
    GracefulShutdownStoreManager,
)
from .saver import KVCheckpointSaver

logger = logging.getLogger(__name__)


def create_checkpointer(settings) -> KVCheckpointSaver:
    """설정에 따라 체크포인터를 생성합니다

    Args:
        settings: DeerSettings (checkpoint_backend, checkpoint_dir 사용)

    Returns:
        memory 백엔드면 메모리 저장소, file 백엔드면 우아한 종료 관리자를 쓰는 체크포인터
    """
    if settings.checkpoint_backend == "file":
        store = GracefulShutdownStoreManager(FileCheckPointStore(settings.checkpoint_dir))
        logger.info(f"파일 체크포인트 저장소 사용: {settings.checkpoint_dir}")
    else:
        store = InMemoryCheckPointStore()
        logger.info("메모리 체크포인트 저장소 사용")
    return KVCheckpointSaver(store)


__all__ = [
    "CheckPointStore",
    "InMemoryCheckPointStore",
    "FileCheckPointStore",
    "GracefulShutdownStoreManager",
    "KVCheckpointSaver",
    "create_checkpointer",
]
