# app/api/posts/schemas.py
from flask import current_app
from marshmallow import Schema, fields, validate, ValidationError

from app.models.post import Category


def validate_page_size(value):
    """설정된 최대 페이지 크기(MAX_PAGE_SIZE)를 넘지 않는지 검사합니다."""
    max_page_size = current_app.config.get('MAX_PAGE_SIZE', 50)
    if value < 1 or value > max_page_size:
        raise ValidationError(f"limit은 1 이상 {max_page_size} 이하여야 합니다.")


# --- API 요청 스키마 ---

class PostInputSchema(Schema):
    """POST /api/posts, PUT /api/posts/{post_id} 요청 본문의 유효성을 검사합니다."""
    title = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    content = fields.Str(required=True, validate=validate.Length(min=1))
    category = fields.Enum(Category, by_value=True, required=True)

class PostListQuerySchema(Schema):
    """GET /api/posts 쿼리 파라미터. cursor는 직전 응답의 next_cursor(게시글 ID)입니다."""
    limit = fields.Int(validate=validate_page_size)
    category = fields.Enum(Category, by_value=True, load_default=None)
    cursor = fields.Str(load_default=None)

class PostLimitQuerySchema(Schema):
    limit = fields.Int(validate=validate_page_size)

# --- API 응답 스키마 ---

class PostSummaryResponseSchema(Schema):
    """게시글 목록 항목 응답 형식 (본문 제외)."""
    post_id = fields.Str(dump_only=True)
    title = fields.Str()
    category = fields.Enum(Category, by_value=True)
    author_email = fields.Str(allow_none=True)
    author_display_name = fields.Str(allow_none=True)
    created_at = fields.DateTime()
    thumbnail_url = fields.Str(allow_none=True)

class PostResponseSchema(PostSummaryResponseSchema):
    """게시글 상세 응답 형식."""
    content = fields.Str()
    author_id = fields.Str()
    updated_at = fields.DateTime()

class PostPageResponseSchema(Schema):
    posts = fields.List(fields.Nested(PostSummaryResponseSchema))
    next_cursor = fields.Str(allow_none=True)
    has_more = fields.Bool()
