# app/store/memory_store.py
"""
인메모리 문서 저장소

Firestore와 같은 계약(정렬 + 동등 필터 + limit + start_after, 스냅샷 구독)을
프로세스 메모리에서 구현합니다. 테스트 환경과 로컬 개발(POST_STORE_BACKEND=memory)에서 사용합니다.
"""

import copy
import json
import logging
import threading
import uuid
from typing import Any, Callable, Dict, List, Optional, Tuple

from app.core.exceptions import NotFoundError
from app.store.base import (
    SERVER_TIMESTAMP,
    DocumentQuery,
    DocumentStore,
    ErrorCallback,
    SnapshotCallback,
    StoredDocument,
    WatchHandle,
)
from app.utils.datetime_utils import DateTimeUtils

logger = logging.getLogger(__name__)


def _auto_id() -> str:
    # Firestore 자동 ID와 같은 20자 길이
    return uuid.uuid4().hex[:20]


class _MemoryWatch(WatchHandle):

    def __init__(self, store: "InMemoryDocumentStore", query: DocumentQuery,
                 on_snapshot: SnapshotCallback, on_error: ErrorCallback):
        self.store = store
        self.query = query
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.last_delivered: Optional[List[Tuple[str, Dict[str, Any]]]] = None
        self.active = True
        # 스냅샷 순번. collected_seq는 저장소 락 안에서, delivered_seq는 delivery_lock 안에서만 갱신
        self.collected_seq = 0
        self.delivered_seq = 0
        self.delivery_lock = threading.RLock()

    def close(self) -> None:
        self.store._remove_watch(self)


class InMemoryDocumentStore(DocumentStore):
    """
    스레드 안전한 인메모리 DocumentStore 구현.
    - 쓰기가 커밋된 직후, 결과 창(window)이 바뀐 구독에만 전체 스냅샷을 전달합니다.
    - SERVER_TIMESTAMP는 한 번의 쓰기 안에서 같은 clock() 값으로 치환됩니다.
    """

    def __init__(self, clock: Callable[[], Any] = DateTimeUtils.now,
                 id_factory: Callable[[], str] = _auto_id):
        self._documents: Dict[str, Dict[str, Any]] = {}
        self._watches: List[_MemoryWatch] = []
        self._lock = threading.RLock()
        self._clock = clock
        self._id_factory = id_factory

    # --- CRUD ---
    async def add_document(self, data: Dict[str, Any]) -> str:
        with self._lock:
            doc_id = self._id_factory()
            while doc_id in self._documents:
                doc_id = self._id_factory()
            self._documents[doc_id] = self._resolve_timestamps(data)
            deliveries = self._collect_deliveries()
        self._deliver(deliveries)
        return doc_id

    async def get_document(self, doc_id: str) -> Optional[StoredDocument]:
        with self._lock:
            data = self._documents.get(doc_id)
            if data is None:
                return None
            return self._to_stored(doc_id, data)

    async def update_document(self, doc_id: str, fields: Dict[str, Any]) -> None:
        with self._lock:
            if doc_id not in self._documents:
                raise NotFoundError(f"문서를 찾을 수 없습니다: {doc_id}", post_id=doc_id)
            self._documents[doc_id].update(self._resolve_timestamps(fields))
            deliveries = self._collect_deliveries()
        self._deliver(deliveries)

    async def delete_document(self, doc_id: str) -> None:
        with self._lock:
            if self._documents.pop(doc_id, None) is None:
                return
            deliveries = self._collect_deliveries()
        self._deliver(deliveries)

    async def run_query(self, query: DocumentQuery) -> List[StoredDocument]:
        with self._lock:
            return self._run_query_locked(query)

    # --- 실시간 구독 ---
    def watch(self, query: DocumentQuery, on_snapshot: SnapshotCallback,
              on_error: ErrorCallback) -> WatchHandle:
        handle = _MemoryWatch(self, query, on_snapshot, on_error)
        with self._lock:
            self._watches.append(handle)
            deliveries = self._collect_deliveries(only=handle)
        self._deliver(deliveries)
        return handle

    def break_watches(self, error: Exception) -> None:
        """모든 활성 구독에 스트림 오류를 전달하고 종료합니다. (연결 끊김 시뮬레이션)"""
        with self._lock:
            watches = list(self._watches)
            self._watches.clear()
            for handle in watches:
                handle.active = False
        for handle in watches:
            handle.on_error(error)

    def _remove_watch(self, handle: _MemoryWatch) -> None:
        with self._lock:
            handle.active = False
            if handle in self._watches:
                self._watches.remove(handle)

    @property
    def active_watch_count(self) -> int:
        with self._lock:
            return len(self._watches)

    # --- 개발용 시드 ---
    def load_seed(self, path: str) -> int:
        """
        JSON 배열 파일로부터 문서를 적재합니다. (로컬 개발용)
        각 항목의 'id'는 문서 ID로, '*_at' 필드의 ISO 문자열은 UTC datetime으로 변환됩니다.
        """
        with open(path, encoding="utf-8") as f:
            items = json.load(f)

        with self._lock:
            for item in items:
                item = dict(item)
                doc_id = item.pop("id", None) or self._id_factory()
                for key, value in list(item.items()):
                    if key.endswith("_at") and isinstance(value, str):
                        item[key] = DateTimeUtils.parse_iso_datetime(value)
                self._documents[doc_id] = item
            deliveries = self._collect_deliveries()
        self._deliver(deliveries)
        logger.info(f"인메모리 저장소 시드 적재 완료: {len(items)}건 ({path})")
        return len(items)

    # --- 내부 구현 ---
    def _resolve_timestamps(self, data: Dict[str, Any]) -> Dict[str, Any]:
        resolved = copy.deepcopy(data)
        timestamp = None
        for key, value in resolved.items():
            if value is SERVER_TIMESTAMP:
                if timestamp is None:
                    timestamp = self._clock()
                resolved[key] = timestamp
        return resolved

    def _to_stored(self, doc_id: str, data: Dict[str, Any]) -> StoredDocument:
        return StoredDocument(id=doc_id, data=copy.deepcopy(data))

    def _run_query_locked(self, query: DocumentQuery) -> List[StoredDocument]:
        # Firestore처럼 정렬 필드가 없는 문서는 정렬 쿼리 결과에서 제외
        items = [(doc_id, data) for doc_id, data in self._documents.items() if query.order_by in data]
        if query.equals is not None:
            field_name, value = query.equals
            items = [(doc_id, data) for doc_id, data in items if data.get(field_name) == value]

        # Firestore와 같이 null 값이 가장 앞(오름차순 기준)이고, 정렬 값이 같으면 문서 ID로 같은 방향 정렬
        def key_of(doc_id, data):
            value = data.get(query.order_by)
            return (value is not None, value, doc_id)

        def sort_key(entry):
            return key_of(*entry)

        ordered = sorted(items, key=sort_key, reverse=query.descending)

        if query.start_after is not None:
            cursor_key = key_of(query.start_after.id, query.start_after.data)
            if query.descending:
                ordered = [entry for entry in ordered if sort_key(entry) < cursor_key]
            else:
                ordered = [entry for entry in ordered if sort_key(entry) > cursor_key]

        if query.limit is not None:
            ordered = ordered[:query.limit]

        return [self._to_stored(doc_id, data) for doc_id, data in ordered]

    def _collect_deliveries(self, only: _MemoryWatch = None):
        deliveries = []
        for handle in ([only] if only else self._watches):
            docs = self._run_query_locked(handle.query)
            signature = [(doc.id, doc.data) for doc in docs]
            if signature != handle.last_delivered:
                handle.last_delivered = signature
                handle.collected_seq += 1
                deliveries.append((handle, handle.collected_seq, docs))
        return deliveries

    def _deliver(self, deliveries) -> None:
        # 동시에 커밋된 쓰기들이 커밋 순서와 다르게 도착하면 더 오래된 스냅샷은 버림
        for handle, seq, docs in deliveries:
            with handle.delivery_lock:
                if not handle.active or seq <= handle.delivered_seq:
                    continue
                handle.delivered_seq = seq
                try:
                    handle.on_snapshot(docs)
                except Exception as e:
                    logger.error(f"스냅샷 콜백 처리 중 오류 발생: {e}", exc_info=True)
