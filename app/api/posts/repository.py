# app/api/posts/repository.py
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from app.core.exceptions import NotFoundError, SubscriptionError, WriteError
from app.models.post import Author, Category, Post, PostInput, PostSummary
from app.store.base import SERVER_TIMESTAMP, DocumentQuery, DocumentStore, StoredDocument
from app.utils.thumbnail import extract_first_image_url

ORDER_FIELD = 'created_at'


@dataclass
class PageOptions:
    """get_posts_page 옵션. cursor는 직전 페이지가 돌려준 next_cursor를 그대로 넘깁니다."""
    category: Optional[Category] = None
    limit_count: int = 5
    cursor: Optional[StoredDocument] = None


@dataclass
class SubscribeOptions:
    category: Optional[Category] = None
    limit_count: int = 20


@dataclass
class PostPage:
    """
    페이지 조회 결과.
    next_cursor가 None이면 더 이상 다음 페이지를 요청하지 않아야 합니다.
    """
    posts: List[PostSummary] = field(default_factory=list)
    next_cursor: Optional[StoredDocument] = None
    has_more: bool = False


def _validate_count(count: int) -> None:
    if not isinstance(count, int) or isinstance(count, bool) or count < 1:
        raise ValueError(f"조회 개수는 1 이상의 정수여야 합니다: {count}")


class PostRepository:
    """
    게시글 조회/페이지네이션/실시간 동기화와 쓰기 작업을 담당하는 저장소 클래스.
    - 저장소 오류를 삼키지 않습니다. 읽기 오류는 그대로, 쓰기 오류는 WriteError로 감싸서 전파합니다.
    - 자동 재시도는 하지 않습니다. 재시도 정책은 호출자의 몫입니다.
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    # --- 쓰기 ---
    async def create_post(self, post_input: PostInput, author: Author) -> str:
        """새 게시글을 저장하고 문서 ID를 반환합니다. created_at과 updated_at은 같은 서버 시간으로 설정됩니다."""
        thumbnail_url = extract_first_image_url(post_input.content)

        post_data = {
            'title': post_input.title,
            'content': post_input.content,
            'category': post_input.category.value,
            'author_id': author.user_id,
            'author_email': author.email,
            'author_display_name': author.display_name,
            'created_at': SERVER_TIMESTAMP,
            'updated_at': SERVER_TIMESTAMP,
        }
        # 썸네일은 이미지가 있을 때만 저장
        if thumbnail_url:
            post_data['thumbnail_url'] = thumbnail_url

        try:
            post_id = await self.store.add_document(post_data)
        except Exception as e:
            logging.error(f"게시글 생성 실패 (author_id: {author.user_id}): {e}", exc_info=True)
            raise WriteError("게시글을 저장하지 못했습니다.", operation='create') from e

        logging.info(f"게시글 생성 완료 (post_id: {post_id})")
        return post_id

    async def update_post(self, post_id: str, post_input: PostInput) -> None:
        """
        제목/본문/카테고리를 수정합니다.
        - 썸네일은 매번 본문에서 다시 계산하며, 이미지가 없으면 None으로 지웁니다.
        - created_at, 작성자 정보, ID는 건드리지 않습니다.
        """
        thumbnail_url = extract_first_image_url(post_input.content)
        update_data = {
            'title': post_input.title,
            'content': post_input.content,
            'category': post_input.category.value,
            'updated_at': SERVER_TIMESTAMP,
            'thumbnail_url': thumbnail_url or None,
        }

        try:
            await self.store.update_document(post_id, update_data)
        except NotFoundError:
            logging.warning(f"수정할 게시글이 없습니다 (post_id: {post_id})")
            raise
        except Exception as e:
            logging.error(f"게시글 수정 실패 (post_id: {post_id}): {e}", exc_info=True)
            raise WriteError("게시글을 수정하지 못했습니다.", post_id=post_id, operation='update') from e

    async def delete_post(self, post_id: str) -> None:
        """게시글을 영구 삭제합니다. 존재하지 않는 ID여도 오류로 취급하지 않습니다."""
        try:
            await self.store.delete_document(post_id)
        except Exception as e:
            logging.error(f"게시글 삭제 실패 (post_id: {post_id}): {e}", exc_info=True)
            raise WriteError("게시글을 삭제하지 못했습니다.", post_id=post_id, operation='delete') from e

    # --- 읽기 ---
    async def get_post(self, post_id: str) -> Optional[Post]:
        document = await self.store.get_document(post_id)
        if document is None:
            return None
        return Post.from_document(document.id, document.data)

    async def get_posts(self, count: int = 5) -> List[PostSummary]:
        _validate_count(count)
        documents = await self.store.run_query(self._build_query(limit=count))
        return self._to_summaries(documents)

    async def get_posts_by_category(self, category: Category, count: int = 20) -> List[PostSummary]:
        _validate_count(count)
        documents = await self.store.run_query(self._build_query(category=category, limit=count))
        return self._to_summaries(documents)

    async def get_posts_page(self, options: Optional[PageOptions] = None) -> PostPage:
        """
        커서 기반 페이지 조회.
        limit_count + 1개를 요청해서 초과분(센티널)이 있으면 has_more=True로 판단하고,
        센티널 문서는 결과와 커서 어디에도 노출하지 않습니다.
        """
        options = options or PageOptions()
        _validate_count(options.limit_count)

        query = self._build_query(
            category=options.category,
            limit=options.limit_count + 1,
            start_after=options.cursor,
        )
        documents = await self.store.run_query(query)

        has_more = len(documents) > options.limit_count
        documents = documents[:options.limit_count]

        return PostPage(
            posts=self._to_summaries(documents),
            next_cursor=documents[-1] if documents else None,
            has_more=has_more,
        )

    async def resolve_cursor(self, post_id: str) -> Optional[StoredDocument]:
        """게시글 ID를 페이지 커서로 변환합니다. (HTTP처럼 커서를 ID로 주고받는 경우)"""
        return await self.store.get_document(post_id)

    async def get_author_id(self, post_id: str) -> Tuple[bool, Optional[str]]:
        """
        (존재 여부, 작성자 ID)를 반환합니다.
        Post로 매핑하지 않으므로 카테고리 등이 손상된 문서도 작성자를 확인할 수 있습니다.
        """
        document = await self.store.get_document(post_id)
        if document is None:
            return False, None
        return True, document.data.get('author_id')

    # --- 실시간 구독 ---
    def subscribe_to_posts(
        self,
        callback: Callable[[List[PostSummary]], None],
        options: Optional[SubscribeOptions] = None,
        on_error: Optional[Callable[[SubscriptionError], None]] = None,
    ) -> Callable[[], None]:
        """
        최신 limit_count개 게시글을 실시간으로 구독합니다.
        - 변경이 있을 때마다 현재 목록 전체를 callback으로 전달합니다. (diff가 아닌 전체 교체)
        - 스트림 오류는 예외 대신 on_error로 전달되고, 구독은 그대로 종료됩니다. (자동 재연결 없음)
        - 반환된 함수로 구독을 해제하며, 여러 번 호출해도 안전합니다.
        """
        options = options or SubscribeOptions()
        _validate_count(options.limit_count)

        state = {'closed': False, 'handle': None}
        lock = threading.Lock()

        def close() -> bool:
            with lock:
                if state['closed']:
                    return False
                state['closed'] = True
                handle = state['handle']
            if handle is not None:
                handle.close()
            return True

        def handle_error(error: Exception) -> None:
            if state['closed']:
                return
            close()
            logging.error(f"게시글 실시간 구독 오류: {error}", exc_info=error)
            if on_error is not None:
                subscription_error = SubscriptionError("게시글 실시간 구독이 중단되었습니다.")
                subscription_error.__cause__ = error
                on_error(subscription_error)

        def handle_snapshot(documents: List[StoredDocument]) -> None:
            if state['closed']:
                return
            try:
                posts = self._to_summaries(documents)
            except Exception as e:
                handle_error(e)
                return
            callback(posts)

        query = self._build_query(category=options.category, limit=options.limit_count)
        handle = self.store.watch(query, handle_snapshot, handle_error)
        with lock:
            state['handle'] = handle
            closed_early = state['closed']
        # 초기 스냅샷 처리 중에 구독이 이미 해제/실패한 경우
        if closed_early:
            handle.close()

        def unsubscribe() -> None:
            if close():
                logging.info("게시글 실시간 구독 해제")

        return unsubscribe

    # --- 내부 구현 ---
    @staticmethod
    def _build_query(category: Optional[Category] = None, limit: Optional[int] = None,
                     start_after: Optional[StoredDocument] = None) -> DocumentQuery:
        return DocumentQuery(
            order_by=ORDER_FIELD,
            descending=True,
            equals=('category', category.value) if category else None,
            limit=limit,
            start_after=start_after,
        )

    @staticmethod
    def _to_summaries(documents: List[StoredDocument]) -> List[PostSummary]:
        return [PostSummary.from_document(doc.id, doc.data) for doc in documents]
