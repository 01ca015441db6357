"""체크포인트 키-값 저장소

그래프 실행 상태 스냅샷(바이트)을 체크포인트 ID로 저장하는 단순 저장소들입니다.

- InMemoryCheckPointStore: 프로세스 메모리 딕셔너리
- FileCheckPointStore: ID마다 파일 하나, 임시 파일 기록 후 원자적 이름 변경
- GracefulShutdownStoreManager: 파일 저장소 + 메모리 캐시, 종료 시 일괄 flush
"""

import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_FILE_PREFIX = "deer_checkpoint_"
_TEMP_SUFFIX = ".tmp"


class CheckPointStore(ABC):
    """체크포인트 저장소 인터페이스"""

    @abstractmethod
    def get(self, checkpoint_id: str) -> Optional[bytes]:
        """체크포인트 데이터를 조회합니다 (없으면 None)"""
        pass

    @abstractmethod
    def set(self, checkpoint_id: str, data: bytes) -> None:
        """체크포인트 데이터를 저장합니다"""
        pass

    @abstractmethod
    def delete(self, checkpoint_id: str) -> None:
        """체크포인트를 삭제합니다 (없으면 무시)"""
        pass

    @abstractmethod
    def list_ids(self, prefix: str = "") -> List[str]:
        """prefix로 시작하는 저장된 체크포인트 ID를 반환합니다"""
        pass

    def close(self) -> None:
        """저장소를 닫습니다"""


class InMemoryCheckPointStore(CheckPointStore):
    """메모리 기반 체크포인트 저장소"""

    def __init__(self):
        self._data: Dict[str, bytes] = {}
        self._lock = threading.RLock()

    def get(self, checkpoint_id: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(checkpoint_id)

    def set(self, checkpoint_id: str, data: bytes) -> None:
        with self._lock:
            self._data[checkpoint_id] = data

    def delete(self, checkpoint_id: str) -> None:
        with self._lock:
            self._data.pop(checkpoint_id, None)

    def list_ids(self, prefix: str = "") -> List[str]:
        with self._lock:
            return [key for key in self._data if key.startswith(prefix)]


class FileCheckPointStore(CheckPointStore):
    """로컬 파일 기반 체크포인트 저장소

    세션을 넘어 상태를 복원할 수 있도록 체크포인트마다 파일 하나를 사용합니다.
    """

    def __init__(self, base_dir: str = "./checkpoints", file_prefix: str = DEFAULT_FILE_PREFIX):
        """
        Args:
            base_dir: 체크포인트 파일 디렉토리 (없으면 생성)
            file_prefix: 체크포인트 파일 이름 접두사
        """
        self.base_dir = Path(base_dir)
        self.file_prefix = file_prefix
        self._lock = threading.RLock()
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise RuntimeError(f"체크포인트 디렉토리 생성 실패: {base_dir}: {e}")

    def _file_path(self, checkpoint_id: str) -> Path:
        return self.base_dir / f"{self.file_prefix}{checkpoint_id}"

    def get(self, checkpoint_id: str) -> Optional[bytes]:
        with self._lock:
            try:
                return self._file_path(checkpoint_id).read_bytes()
            except FileNotFoundError:
                return None
            except OSError as e:
                raise RuntimeError(f"체크포인트 파일 읽기 실패: {checkpoint_id}: {e}")

    def set(self, checkpoint_id: str, data: bytes) -> None:
        with self._lock:
            file_path = self._file_path(checkpoint_id)
            temp_path = file_path.with_name(file_path.name + _TEMP_SUFFIX)
            try:
                temp_path.write_bytes(data)
                os.replace(temp_path, file_path)
            except OSError as e:
                temp_path.unlink(missing_ok=True)
                raise RuntimeError(f"체크포인트 파일 저장 실패: {checkpoint_id}: {e}")
            logger.debug(f"체크포인트 저장: {checkpoint_id} ({len(data)} bytes)")

    def delete(self, checkpoint_id: str) -> None:
        with self._lock:
            self._file_path(checkpoint_id).unlink(missing_ok=True)

    def list_ids(self, prefix: str = "") -> List[str]:
        with self._lock:
            ids = []
            for path in sorted(self.base_dir.glob(f"{self.file_prefix}{prefix}*")):
                if path.name.endswith(_TEMP_SUFFIX):
                    continue
                ids.append(path.name[len(self.file_prefix):])
            return ids


class GracefulShutdownStoreManager(CheckPointStore):
    """우아한 종료를 위한 체크포인트 저장소 관리자

    쓰기는 파일 저장소에 즉시 반영하면서 메모리에도 캐시해 두고,
    종료 시 flush_to_file()로 캐시 전체를 다시 기록합니다.
    """

    def __init__(self, store: FileCheckPointStore):
        self.store = store
        self._cache: Dict[str, bytes] = {}
        self._lock = threading.RLock()

    def get(self, checkpoint_id: str) -> Optional[bytes]:
        return self.store.get(checkpoint_id)

    def set(self, checkpoint_id: str, data: bytes) -> None:
        with self._lock:
            self._cache[checkpoint_id] = data
        self.store.set(checkpoint_id, data)

    def delete(self, checkpoint_id: str) -> None:
        with self._lock:
            self._cache.pop(checkpoint_id, None)
        self.store.delete(checkpoint_id)

    def list_ids(self, prefix: str = "") -> List[str]:
        return self.store.list_ids(prefix)

    def flush_to_file(self) -> int:
        """캐시된 모든 체크포인트를 파일로 기록합니다

        Returns:
            기록한 체크포인트 수
        """
        with self._lock:
            cached = dict(self._cache)
        for checkpoint_id, data in cached.items():
            self.store.set(checkpoint_id, data)
        logger.info(f"체크포인트 {len(cached)}개 파일로 flush 완료")
        return len(cached)

    def clear_cache(self) -> None:
        """메모리 캐시를 비웁니다"""
        with self._lock:
            self._cache = {}

    def close(self) -> None:
        self.flush_to_file()
        self.store.close()
