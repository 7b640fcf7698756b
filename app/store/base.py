# app/store/base.py
"""
원격 문서 저장소 어댑터 인터페이스

게시글 저장소(PostRepository)는 이 인터페이스에만 의존합니다.
정렬/필터/limit/start_after 커서 쿼리와 변경 스냅샷 구독을 제공하는 저장소라면
어떤 구현(Firestore, 인메모리 등)이든 교체해서 사용할 수 있습니다.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple


class _ServerTimestamp:
    """쓰기 시점에 저장소의 서버 시간으로 치환되는 센티널 값."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"

    # 복사해도 같은 객체여야 `is SERVER_TIMESTAMP` 비교가 유지됨
    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self


SERVER_TIMESTAMP = _ServerTimestamp()


@dataclass(frozen=True)
class StoredDocument:
    """
    저장소에서 읽은 문서 한 건.
    raw는 저장소 고유의 스냅샷 객체로, start_after 커서로만 사용되는 불투명 토큰입니다.
    """
    id: str
    data: Dict[str, Any]
    raw: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class DocumentQuery:
    """
    단일 정렬 필드, 단일 동등 필터, limit, start_after만 지원하는 쿼리 정의.
    equals는 (필드명, 값) 튜플입니다.
    """
    order_by: str
    descending: bool = True
    equals: Optional[Tuple[str, Any]] = None
    limit: Optional[int] = None
    start_after: Optional[StoredDocument] = None


SnapshotCallback = Callable[[List[StoredDocument]], None]
ErrorCallback = Callable[[Exception], None]


class WatchHandle(ABC):
    """실시간 스냅샷 구독 핸들. close()는 여러 번 호출해도 안전해야 합니다."""

    @abstractmethod
    def close(self) -> None:
        pass


class DocumentStore(ABC):
    """
    문서 컬렉션 하나에 대한 비동기 CRUD/쿼리/구독 인터페이스.

    쓰기 실패는 저장소 예외를 그대로 전파합니다. (재시도 없음)
    """

    @abstractmethod
    async def add_document(self, data: Dict[str, Any]) -> str:
        """새 문서를 추가하고 저장소가 발급한 문서 ID를 반환합니다."""
        pass

    @abstractmethod
    async def get_document(self, doc_id: str) -> Optional[StoredDocument]:
        """문서를 조회합니다. 없으면 None을 반환합니다."""
        pass

    @abstractmethod
    async def update_document(self, doc_id: str, fields: Dict[str, Any]) -> None:
        """
        문서의 일부 필드를 갱신합니다.

        Raises:
            NotFoundError: 문서가 존재하지 않는 경우
        """
        pass

    @abstractmethod
    async def delete_document(self, doc_id: str) -> None:
        """문서를 삭제합니다. 존재하지 않는 문서 삭제는 오류가 아닙니다."""
        pass

    @abstractmethod
    async def run_query(self, query: DocumentQuery) -> List[StoredDocument]:
        pass

    @abstractmethod
    def watch(self, query: DocumentQuery, on_snapshot: SnapshotCallback,
              on_error: ErrorCallback) -> WatchHandle:
        """
        쿼리 결과가 바뀔 때마다 현재 결과 전체를 on_snapshot으로 전달합니다.
        구독 직후 초기 스냅샷도 한 번 전달됩니다.
        스트림 오류는 on_error로 전달되며 이후 해당 구독은 종료됩니다.
        """
        pass
