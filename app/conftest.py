# app/conftest.py
"""
공용 테스트 픽스처

- Firebase 없이 인메모리 저장소로 저장소/서비스/라우트를 테스트합니다.
"""

import os
import pytest

os.environ.setdefault("FLASK_ENV", "testing")

from flask_jwt_extended import create_access_token

from app import create_app
from app.api.posts.repository import PostRepository
from app.models.post import Category
from app.sample_posts import make_post_data
from app.store.memory_store import InMemoryDocumentStore


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def repository(store):
    return PostRepository(store)


@pytest.fixture
def seed_posts():
    """created_at이 [minutes...]인 게시글을 저장하고 ID 목록을 같은 순서로 반환하는 코루틴 함수."""
    async def _seed(target_store, minutes_list, category: Category = Category.REACT, **overrides):
        ids = []
        for minutes in minutes_list:
            ids.append(await target_store.add_document(make_post_data(minutes, category, **overrides)))
        return ids
    return _seed


@pytest.fixture
def app():
    flask_app = create_app('testing')
    yield flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(app):
    """JWT Authorization 헤더를 만드는 함수. 작성자 정보는 추가 클레임으로 넣습니다."""
    def _headers(user_id: str = 'user-1', email: str = 'writer@example.com', display_name: str = '작성자'):
        with app.app_context():
            token = create_access_token(
                identity=user_id,
                additional_claims={'email': email, 'display_name': display_name},
            )
        return {'Authorization': f'Bearer {token}'}
    return _headers
