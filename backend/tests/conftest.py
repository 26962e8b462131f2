"""測試共用替身與 fixture。"""
from __future__ import annotations

import json
import threading
from typing import Any, Dict, Iterable, List, Tuple

import pytest

from app.core.celery_app import celery_app
from app.repositories.library import LibraryRepository
from app.services.library_service import LibraryService
from app.services.storage_service import StorageService

TEST_USER_ID = "00000000-0000-0000-0000-000000000123"
OTHER_USER_ID = "00000000-0000-0000-0000-000000000999"


class InMemoryKeyValueStore:
    """以 dict 模擬 kv_store，清單操作以鎖保證原子性。"""

    def __init__(self) -> None:
        self.data: Dict[str, Any] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _copy(value: Any) -> Any:
        # 模擬 JSON 欄位的序列化往返
        return None if value is None else json.loads(json.dumps(value))

    def get(self, key: str) -> Any | None:
        return self._copy(self.data.get(key))

    def set(self, key: str, value: Any) -> None:
        self.data[key] = self._copy(value)

    def delete(self, key: str) -> None:
        self.data.pop(key, None)

    def mget(self, keys: Iterable[str]) -> Dict[str, Any]:
        return {key: self._copy(self.data[key]) for key in keys if key in self.data}

    def mdelete(self, keys: Iterable[str]) -> None:
        for key in keys:
            self.data.pop(key, None)

    def get_by_prefix(self, prefix: str) -> List[Tuple[str, Any]]:
        return sorted((key, self._copy(value)) for key, value in self.data.items() if key.startswith(prefix))

    def add_to_list(self, key: str, item: str) -> List[str]:
        with self._lock:
            items = list(self.data.get(key) or [])
            if item not in items:
                items.append(item)
            self.data[key] = items
            return list(items)

    def remove_from_list(self, key: str, items: Iterable[str]) -> List[str]:
        removed = set(items)
        with self._lock:
            remaining = [value for value in self.data.get(key) or [] if value not in removed]
            self.data[key] = remaining
            return list(remaining)

    def update_if(self, key: str, predicate, value: Any) -> bool:
        with self._lock:
            if key not in self.data or not predicate(self._copy(self.data[key])):
                return False
            self.data[key] = self._copy(value)
            return True


class StubBucket:
    """模擬 Supabase Storage bucket。"""

    def __init__(self, name: str, owner: "StubStorage") -> None:
        self.name = name
        self._owner = owner
        self.objects: Dict[str, bytes] = {}
        self.removed: List[str] = []
        self.last_expires: int | None = None

    def upload(self, path: str, data: bytes, options: Dict[str, str]) -> Dict[str, str]:
        if self._owner.fail_upload:
            raise RuntimeError("upload refused")
        if path in self.objects:
            raise RuntimeError("The resource already exists")
        self.objects[path] = data
        return {"Key": f"{self.name}/{path}"}

    def create_signed_url(self, path: str, expires_in: int) -> Dict[str, str]:
        if self._owner.fail_sign:
            raise RuntimeError("sign refused")
        self.last_expires = expires_in
        url = f"/object/sign/{self.name}/{path}?token=abc"
        return {"signedURL": url, "signedUrl": url}

    def remove(self, paths: List[str]) -> List[Dict[str, str]]:
        if self._owner.fail_remove:
            raise RuntimeError("storage unavailable")
        for path in paths:
            self.objects.pop(path, None)
            self.removed.append(path)
        return [{"name": path} for path in paths]


class StubBucketInfo:
    def __init__(self, name: str) -> None:
        self.name = name


class StubStorage:
    """模擬 storage.from_ 與 bucket 管理呼叫。"""

    def __init__(self) -> None:
        self.buckets: Dict[str, StubBucket] = {}
        self.created: List[str] = []
        self.fail_upload = False
        self.fail_sign = False
        self.fail_remove = False

    def from_(self, bucket: str) -> StubBucket:
        if bucket not in self.buckets:
            self.buckets[bucket] = StubBucket(bucket, self)
        return self.buckets[bucket]

    def list_buckets(self) -> List[StubBucketInfo]:
        return [StubBucketInfo(name) for name in self.buckets]

    def create_bucket(self, name: str, options: Dict[str, Any] | None = None) -> Dict[str, str]:
        self.created.append(name)
        self.from_(name)
        return {"name": name}


class StubSupabaseClient:
    """簡單的 Supabase client 替身。"""

    def __init__(self) -> None:
        self.storage = StubStorage()


def build_storage_service(client: StubSupabaseClient, *, max_bytes: int = 10 * 1024 * 1024) -> StorageService:
    return StorageService(
        client=client,  # type: ignore[arg-type]
        score_bucket="scores",
        audio_bucket="audio",
        midi_bucket="midi",
        base_url="https://demo.supabase.co",
        signed_url_expires=3600,
        max_bytes=max_bytes,
    )


@pytest.fixture
def kv_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def supabase_client() -> StubSupabaseClient:
    return StubSupabaseClient()


@pytest.fixture
def storage_service(supabase_client: StubSupabaseClient) -> StorageService:
    return build_storage_service(supabase_client)


@pytest.fixture
def repository(kv_store: InMemoryKeyValueStore) -> LibraryRepository:
    return LibraryRepository(kv_store)  # type: ignore[arg-type]


@pytest.fixture
def library_service(repository: LibraryRepository, storage_service: StorageService) -> LibraryService:
    return LibraryService(repository, storage_service)


@pytest.fixture
def sent_tasks(monkeypatch: pytest.MonkeyPatch) -> List[Tuple[Any, Any, Any]]:
    """攔截 Celery 派送，回傳派送紀錄。"""

    tasks: List[Tuple[Any, Any, Any]] = []
    monkeypatch.setattr(
        celery_app,
        "send_task",
        lambda name, args=(), kwargs=None: tasks.append((name, args, kwargs)),
    )
    return tasks


__all__ = [
    "InMemoryKeyValueStore",
    "OTHER_USER_ID",
    "StubSupabaseClient",
    "TEST_USER_ID",
    "build_storage_service",
]
