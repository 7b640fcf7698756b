# app/store/firestore_store.py
import asyncio
import logging
import threading
from typing import Any, Dict, List, Optional

from firebase_admin import firestore
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1.base_query import FieldFilter

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


class _FirestoreWatch(WatchHandle):
    """
    Query.on_snapshot 구독을 감싸는 핸들.
    - Firestore 리스너 스레드에서 받은 스냅샷을, 구독 시점의 이벤트 루프가 있으면 그 루프로 넘깁니다.
    - close() 이후 도착한 스냅샷은 버립니다.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop],
                 on_snapshot: SnapshotCallback, on_error: ErrorCallback):
        self._loop = loop
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._lock = threading.Lock()
        self._closed = False
        self._watch = None

    def attach(self, watch) -> None:
        self._watch = watch
        # Python Watch는 오류 콜백을 받지 않으므로 스트림 RPC 종료를 직접 감지
        rpc = getattr(watch, "_rpc", None)
        if rpc is not None:
            rpc.add_done_callback(self._on_stream_done)

    def handle_snapshot(self, docs, changes, read_time) -> None:
        if self._closed:
            return
        try:
            stored = [StoredDocument(id=doc.id, data=doc.to_dict() or {}, raw=doc) for doc in docs]
        except Exception as e:
            logging.error(f"실시간 스냅샷 변환 실패: {e}", exc_info=True)
            self._fail(e)
            return
        self._dispatch(self._emit, stored)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        if self._watch is not None:
            self._watch.unsubscribe()

    def _emit(self, stored: List[StoredDocument]) -> None:
        if not self._closed:
            self._on_snapshot(stored)

    def _on_stream_done(self, future) -> None:
        error = future if isinstance(future, Exception) else RuntimeError("Firestore 실시간 스트림이 종료되었습니다.")
        self._fail(error)

    def _fail(self, error: Exception) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        if self._watch is not None:
            threading.Thread(target=self._watch.unsubscribe, daemon=True).start()
        self._dispatch(self._on_error, error)

    def _dispatch(self, fn, *args) -> None:
        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(fn, *args)
        else:
            fn(*args)


class FirestoreDocumentStore(DocumentStore):
    """
    firebase_admin Firestore 클라이언트 기반 DocumentStore 구현.
    동기 클라이언트 호출은 asyncio.to_thread로 실행하여 이벤트 루프를 막지 않습니다.
    """

    def __init__(self, collection_name: str = 'posts', client=None):
        self.db = client or firestore.client()
        self.collection_ref = self.db.collection(collection_name)

    async def add_document(self, data: Dict[str, Any]) -> str:
        payload = self._prepare(data)
        _, doc_ref = await asyncio.to_thread(self.collection_ref.add, payload)
        return doc_ref.id

    async def get_document(self, doc_id: str) -> Optional[StoredDocument]:
        snapshot = await asyncio.to_thread(self.collection_ref.document(doc_id).get)
        if not snapshot.exists:
            return None
        return StoredDocument(id=snapshot.id, data=snapshot.to_dict() or {}, raw=snapshot)

    async def update_document(self, doc_id: str, fields: Dict[str, Any]) -> None:
        doc_ref = self.collection_ref.document(doc_id)
        try:
            await asyncio.to_thread(doc_ref.update, self._prepare(fields))
        except google_exceptions.NotFound as e:
            raise NotFoundError(f"문서를 찾을 수 없습니다: {doc_id}", post_id=doc_id) from e

    async def delete_document(self, doc_id: str) -> None:
        # Firestore의 delete는 문서가 없어도 성공합니다.
        await asyncio.to_thread(self.collection_ref.document(doc_id).delete)

    async def run_query(self, query: DocumentQuery) -> List[StoredDocument]:
        def _run():
            return [
                StoredDocument(id=doc.id, data=doc.to_dict() or {}, raw=doc)
                for doc in self._build_query(query).stream()
            ]
        return await asyncio.to_thread(_run)

    def watch(self, query: DocumentQuery, on_snapshot: SnapshotCallback,
              on_error: ErrorCallback) -> WatchHandle:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        handle = _FirestoreWatch(loop, on_snapshot, on_error)
        handle.attach(self._build_query(query).on_snapshot(handle.handle_snapshot))
        logging.info(f"Firestore 실시간 구독 시작 (collection: {self.collection_ref.id})")
        return handle

    def _build_query(self, query: DocumentQuery):
        firestore_query = self.collection_ref
        if query.equals is not None:
            field_name, value = query.equals
            firestore_query = firestore_query.where(filter=FieldFilter(field_name, "==", value))

        direction = firestore.Query.DESCENDING if query.descending else firestore.Query.ASCENDING
        firestore_query = firestore_query.order_by(query.order_by, direction=direction)

        if query.start_after is not None:
            firestore_query = firestore_query.start_after(self._cursor_snapshot(query.start_after))
        if query.limit is not None:
            firestore_query = firestore_query.limit(query.limit)
        return firestore_query

    def _cursor_snapshot(self, document: StoredDocument):
        # 스냅샷 커서를 써야 정렬 값이 같은 문서들 사이에서도 문서 ID로 위치가 정해짐
        if document.raw is not None:
            return document.raw
        return self.collection_ref.document(document.id).get()

    @staticmethod
    def _prepare(data: Dict[str, Any]) -> Dict[str, Any]:
        prepared = DateTimeUtils.for_firestore(data)
        return {
            key: firestore.SERVER_TIMESTAMP if value is SERVER_TIMESTAMP else value
            for key, value in prepared.items()
        }
