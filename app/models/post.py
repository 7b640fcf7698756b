# app/models/post.py
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any

from app.utils.datetime_utils import DateTimeUtils


class Category(Enum):
    """게시글 카테고리 (고정된 집합)."""
    REACT = "react"
    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"
    NEXTJS = "nextjs"
    FIREBASE = "firebase"
    ETC = "etc"


@dataclass
class Author:
    """게시글 작성 시점의 작성자 정보 스냅샷. 이후 사용자 정보가 바뀌어도 갱신하지 않습니다."""
    user_id: str
    email: Optional[str]
    display_name: Optional[str] = None


@dataclass
class PostInput:
    """게시글 작성/수정 요청 데이터. 저장 전에 항상 썸네일 추출을 거칩니다."""
    title: str
    content: str
    category: Category


@dataclass
class PostSummary:
    """
    목록 화면용 게시글 요약. Post에서 content 등을 제외한 필드 부분집합입니다.
    """
    post_id: str
    title: str
    category: Category
    author_email: Optional[str]
    author_display_name: Optional[str]
    created_at: datetime
    thumbnail_url: Optional[str] = None

    @classmethod
    def from_document(cls, post_id: str, data: Dict[str, Any]) -> "PostSummary":
        data = DateTimeUtils.from_firestore(data)
        return cls(
            post_id=post_id,
            title=data.get("title"),
            category=Category(data.get("category")),
            author_email=data.get("author_email"),
            author_display_name=data.get("author_display_name"),
            created_at=data.get("created_at"),
            thumbnail_url=data.get("thumbnail_url"),
        )


@dataclass
class Post:
    """
    Firestore 'posts' 컬렉션의 문서 구조를 정의하는 데이터클래스.
    post_id는 저장소가 발급하며 문서 본문에는 저장하지 않습니다.
    """
    post_id: str
    title: str
    content: str
    category: Category
    author_id: str
    author_email: Optional[str]
    author_display_name: Optional[str]
    created_at: datetime
    updated_at: datetime
    thumbnail_url: Optional[str] = None

    @classmethod
    def from_document(cls, post_id: str, data: Dict[str, Any]) -> "Post":
        data = DateTimeUtils.from_firestore(data)
        return cls(
            post_id=post_id,
            title=data.get("title"),
            content=data.get("content"),
            category=Category(data.get("category")),
            author_id=data.get("author_id"),
            author_email=data.get("author_email"),
            author_display_name=data.get("author_display_name"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
            thumbnail_url=data.get("thumbnail_url"),
        )

    def to_summary(self) -> PostSummary:
        return PostSummary(
            post_id=self.post_id,
            title=self.title,
            category=self.category,
            author_email=self.author_email,
            author_display_name=self.author_display_name,
            created_at=self.created_at,
            thumbnail_url=self.thumbnail_url,
        )
