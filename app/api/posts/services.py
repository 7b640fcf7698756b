# app/api/posts/services.py
import logging

from app.api.posts.repository import PostRepository
from app.models.post import Author, PostInput
from app.services.notification_service import NotificationService
from app.services.query_cache import QueryCache, post_query_keys


class PostMutationService:
    """
    게시글 작성/수정/삭제를 감싸는 서비스 클래스.
    - 성공 시: 게시글 목록 캐시 전체를 무효화하고 성공 알림을 보냅니다.
    - 실패 시: 실패 알림만 보내고 캐시는 그대로 둔 채, 원래 예외를 그대로 다시 발생시킵니다.
    비즈니스 로직은 PostRepository에 있으며, 이 클래스는 부수 효과만 담당합니다.
    """
    def __init__(self, repository: PostRepository, cache: QueryCache, notifications: NotificationService):
        self.repository = repository
        self.cache = cache
        self.notifications = notifications

    async def create_post(self, post_input: PostInput, author: Author) -> str:
        try:
            post_id = await self.repository.create_post(post_input, author)
        except Exception:
            self.notifications.failure("글 작성에 실패했습니다")
            raise

        self.cache.invalidate(post_query_keys.lists())
        self.notifications.success("글이 작성되었습니다")
        return post_id

    async def update_post(self, post_id: str, post_input: PostInput) -> None:
        try:
            await self.repository.update_post(post_id, post_input)
        except Exception:
            self.notifications.failure("글 수정에 실패했습니다")
            raise

        self._invalidate(post_id)
        self.notifications.success("글이 수정되었습니다")

    async def delete_post(self, post_id: str) -> None:
        try:
            await self.repository.delete_post(post_id)
        except Exception:
            self.notifications.failure("글 삭제에 실패했습니다")
            raise

        self._invalidate(post_id)
        self.notifications.success("글이 삭제되었습니다")

    def _invalidate(self, post_id: str) -> None:
        self.cache.invalidate(post_query_keys.lists())
        self.cache.invalidate(post_query_keys.detail(post_id))
        logging.info(f"게시글 캐시 무효화 완료 (post_id: {post_id})")

