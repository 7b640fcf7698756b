# app/sample_posts.py
"""
테스트용 게시글 샘플 데이터

게시글 생성 시각은 기준 시각 + N분으로 만들어 정렬 순서를 명확히 합니다.
"""

from datetime import datetime, timedelta, timezone

from app.models.post import Category

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def at(minutes: int) -> datetime:
    return BASE_TIME + timedelta(minutes=minutes)


def make_post_data(minutes: int, category: Category = Category.REACT, **overrides) -> dict:
    data = {
        'title': f'post-{minutes}',
        'content': f'<p>본문 {minutes}</p>',
        'category': category.value,
        'author_id': 'user-1',
        'author_email': 'writer@example.com',
        'author_display_name': '작성자',
        'created_at': at(minutes),
        'updated_at': at(minutes),
    }
    data.update(overrides)
    return data
