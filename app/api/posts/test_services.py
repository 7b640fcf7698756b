# app/api/posts/test_services.py
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.api.posts.services import PostMutationService
from app.core.exceptions import NotFoundError, WriteError
from app.models.notification import NotificationType
from app.models.post import Author, Category, PostInput
from app.services.notification_service import NotificationService
from app.services.query_cache import QueryCache, post_query_keys

AUTHOR = Author(user_id='user-1', email='writer@example.com')
POST_INPUT = PostInput('제목', '<p>본문</p>', Category.REACT)


@pytest.fixture
def cache():
    cache = QueryCache()
    cache.set(post_query_keys.list(limit=5), ['page'])
    cache.set(post_query_keys.list(category='react', limit=20), ['category page'])
    cache.set(post_query_keys.detail('p1'), 'detail p1')
    cache.set(post_query_keys.detail('p2'), 'detail p2')
    return cache


@pytest.fixture
def notifications():
    return NotificationService()


def messages(notifications):
    return [(n.type, n.message) for n in reversed(notifications.recent())]


@pytest.mark.asyncio
async def test_create_success_invalidates_lists_and_notifies(repository, cache, notifications):
    service = PostMutationService(repository, cache, notifications)

    post_id = await service.create_post(POST_INPUT, AUTHOR)

    assert await repository.get_post(post_id) is not None
    assert cache.get(post_query_keys.list(limit=5)) is None
    assert cache.get(post_query_keys.list(category='react', limit=20)) is None
    assert cache.get(post_query_keys.detail('p1')) == 'detail p1'
    assert messages(notifications) == [(NotificationType.SUCCESS, "글이 작성되었습니다")]


@pytest.mark.asyncio
async def test_update_and_delete_invalidate_their_detail(repository, cache, notifications):
    service = PostMutationService(repository, cache, notifications)
    post_id = await repository.create_post(POST_INPUT, AUTHOR)
    cache.set(post_query_keys.detail(post_id), 'stale')

    await service.update_post(post_id, PostInput('수정', '<p>수정</p>', Category.ETC))
    assert cache.get(post_query_keys.detail(post_id)) is None
    assert cache.get(post_query_keys.detail('p2')) == 'detail p2'

    cache.set(post_query_keys.detail(post_id), 'stale again')
    await service.delete_post(post_id)

    assert cache.get(post_query_keys.detail(post_id)) is None
    assert await repository.get_post(post_id) is None
    assert messages(notifications) == [
        (NotificationType.SUCCESS, "글이 수정되었습니다"),
        (NotificationType.SUCCESS, "글이 삭제되었습니다"),
    ]


@pytest.mark.asyncio
async def test_failure_notifies_keeps_cache_and_reraises(cache, notifications):
    repository = MagicMock()
    write_error = WriteError("저장 실패", operation='create')
    repository.create_post = AsyncMock(side_effect=write_error)
    repository.update_post = AsyncMock(side_effect=NotFoundError("없음", post_id='p1'))
    repository.delete_post = AsyncMock(side_effect=WriteError("삭제 실패", operation='delete'))
    service = PostMutationService(repository, cache, notifications)
    cached_before = len(cache)

    with pytest.raises(WriteError) as raised:
        await service.create_post(POST_INPUT, AUTHOR)
    with pytest.raises(NotFoundError):
        await service.update_post('p1', POST_INPUT)
    with pytest.raises(WriteError):
        await service.delete_post('p1')

    assert raised.value is write_error
    assert len(cache) == cached_before
    assert messages(notifications) == [
        (NotificationType.FAILURE, "글 작성에 실패했습니다"),
        (NotificationType.FAILURE, "글 수정에 실패했습니다"),
        (NotificationType.FAILURE, "글 삭제에 실패했습니다"),
    ]


@pytest.mark.asyncio
async def test_listener_error_does_not_fail_mutation(repository, cache, notifications):
    def broken_listener(notification):
        raise RuntimeError("toast 렌더링 실패")

    notifications.add_listener(broken_listener)
    service = PostMutationService(repository, cache, notifications)

    post_id = await service.create_post(POST_INPUT, AUTHOR)

    assert post_id
