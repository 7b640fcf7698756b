# app/api/posts/routes.py
import json
import logging
import queue
from flask import Blueprint, request, jsonify, Response, current_app, stream_with_context
from flask_jwt_extended import jwt_required, get_jwt_identity, get_jwt
from marshmallow import ValidationError

from app.api.posts.repository import PageOptions, SubscribeOptions
from app.api.posts.schemas import (
    PostInputSchema, PostListQuerySchema, PostLimitQuerySchema,
    PostSummaryResponseSchema, PostResponseSchema, PostPageResponseSchema,
)
from app.core.exceptions import NotFoundError, WriteError
from app.models.post import Author, Category, PostInput
from app.services.query_cache import post_query_keys


posts_bp = Blueprint('posts_bp', __name__)


def _author_from_jwt() -> Author:
    """JWT identity와 추가 클레임(email, display_name)으로 작성자 스냅샷을 만듭니다."""
    claims = get_jwt()
    return Author(
        user_id=get_jwt_identity(),
        email=claims.get('email'),
        display_name=claims.get('display_name'),
    )


def _validation_error(err: ValidationError):
    return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400


def _sse(event: str, payload) -> str:
    return f"event: {event}\ndata: {json.dumps(payload, ensure_ascii=False)}\n\n"


def generate_post_events(events: queue.Queue, unsubscribe, keepalive_seconds: float):
    """
    구독 콜백이 넣어 준 이벤트를 Server-Sent Events 형식으로 내보냅니다.
    - posts: 현재 목록 전체 (매번 전체 교체)
    - error: 구독 오류 후 스트림 종료
    스트림이 끝나면 (클라이언트 연결 종료 포함) 구독을 해제합니다.
    """
    try:
        while True:
            try:
                kind, payload = events.get(timeout=keepalive_seconds)
            except queue.Empty:
                yield ": keep-alive\n\n"
                continue

            if kind == 'error':
                yield _sse('error', {"error_code": payload.error_code, "message": payload.message})
                return
            yield _sse('posts', PostSummaryResponseSchema(many=True).dump(payload))
    finally:
        unsubscribe()


@posts_bp.route('/', methods=['GET'])
async def get_posts_page():
    """
    게시글 목록을 커서 기반 페이지네이션으로 조회합니다.
    - cursor: 직전 응답의 next_cursor (마지막 게시글 ID)
    - next_cursor가 null이면 더 이상 요청하지 않아야 합니다.
    """
    repository = current_app.services['post_repository']
    cache = current_app.services['query_cache']
    try:
        args = PostListQuerySchema().load(request.args)
    except ValidationError as err:
        return _validation_error(err)

    limit = args.get('limit') or current_app.config['DEFAULT_PAGE_SIZE']
    category = args.get('category')
    cursor_id = args.get('cursor')

    async def load_page():
        cursor = None
        if cursor_id:
            cursor = await repository.resolve_cursor(cursor_id)
            if cursor is None:
                return None
        page = await repository.get_posts_page(PageOptions(category=category, limit_count=limit, cursor=cursor))
        return PostPageResponseSchema().dump({
            "posts": page.posts,
            "next_cursor": page.next_cursor.id if page.next_cursor else None,
            "has_more": page.has_more,
        })

    key = post_query_keys.list(category=category.value if category else None, limit=limit, cursor=cursor_id)
    try:
        result = await cache.fetch(key, load_page)
    except Exception as e:
        logging.error(f"게시글 목록 조회 중 오류 발생: {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "게시물 목록 조회 중 오류가 발생했습니다."}), 500

    if result is None:
        return jsonify({"error_code": "INVALID_CURSOR", "message": "유효하지 않은 커서입니다."}), 400
    return jsonify(result), 200


@posts_bp.route('/recent', methods=['GET'])
async def get_recent_posts():
    """최신 게시글 목록(첫 페이지)을 조회합니다."""
    repository = current_app.services['post_repository']
    cache = current_app.services['query_cache']
    try:
        args = PostLimitQuerySchema().load(request.args)
    except ValidationError as err:
        return _validation_error(err)

    limit = args.get('limit') or current_app.config['DEFAULT_PAGE_SIZE']

    async def load_posts():
        posts = await repository.get_posts(limit)
        return PostSummaryResponseSchema(many=True).dump(posts)

    posts = await cache.fetch(post_query_keys.list(scope='recent', limit=limit), load_posts)
    return jsonify({"posts": posts}), 200


@posts_bp.route('/categories/<string:category>', methods=['GET'])
async def get_posts_by_category(category: str):
    """특정 카테고리의 최신 게시글 목록을 조회합니다."""
    repository = current_app.services['post_repository']
    cache = current_app.services['query_cache']
    try:
        selected = Category(category)
    except ValueError:
        return jsonify({"error_code": "INVALID_CATEGORY", "message": f"'{category}'은(는) 지원하지 않는 카테고리입니다."}), 400
    try:
        args = PostLimitQuerySchema().load(request.args)
    except ValidationError as err:
        return _validation_error(err)

    limit = args.get('limit') or current_app.config['DEFAULT_CATEGORY_PAGE_SIZE']

    async def load_posts():
        posts = await repository.get_posts_by_category(selected, limit)
        return PostSummaryResponseSchema(many=True).dump(posts)

    posts = await cache.fetch(post_query_keys.list(scope='category', category=selected.value, limit=limit), load_posts)
    return jsonify({"posts": posts}), 200


@posts_bp.route('/stream', methods=['GET'])
def stream_posts():
    """
    최신 게시글 목록을 Server-Sent Events로 실시간 전송합니다.
    목록이 바뀔 때마다 현재 목록 전체를 'posts' 이벤트로 보냅니다.
    """
    repository = current_app.services['post_repository']
    try:
        args = PostListQuerySchema(only=('limit', 'category')).load(request.args)
    except ValidationError as err:
        return _validation_error(err)

    options = SubscribeOptions(
        category=args.get('category'),
        limit_count=args.get('limit') or current_app.config['DEFAULT_SUBSCRIBE_LIMIT'],
    )
    events = queue.Queue()
    unsubscribe = repository.subscribe_to_posts(
        lambda posts: events.put(('posts', posts)),
        options,
        on_error=lambda error: events.put(('error', error)),
    )

    keepalive = current_app.config['SSE_KEEPALIVE_SECONDS']
    response = Response(
        stream_with_context(generate_post_events(events, unsubscribe, keepalive)),
        mimetype='text/event-stream',
        headers={'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'},
    )
    # 스트림이 한 번도 소비되지 않고 닫혀도 구독이 남지 않도록
    response.call_on_close(unsubscribe)
    return response


@posts_bp.route('/<string:post_id>', methods=['GET'])
async def get_post(post_id: str):
    """특정 게시글의 상세 정보를 조회합니다."""
    repository = current_app.services['post_repository']
    cache = current_app.services['query_cache']

    async def load_post():
        post = await repository.get_post(post_id)
        return PostResponseSchema().dump(post) if post else None

    post = await cache.fetch(post_query_keys.detail(post_id), load_post)
    if not post:
        return jsonify({"error_code": "POST_NOT_FOUND", "message": "게시물을 찾을 수 없습니다."}), 404
    return jsonify(post), 200


@posts_bp.route('/', methods=['POST'])
@jwt_required()
async def create_post():
    """
    새로운 게시글을 작성합니다.
    - 요청 본문은 PostInputSchema에 따라 유효성을 검사합니다.
    - 작성자 정보는 JWT에서 가져와 게시글에 함께 저장합니다.
    """
    mutation_service = current_app.services['post_mutations']
    try:
        data = PostInputSchema().load(request.get_json(silent=True) or {})
        post_id = await mutation_service.create_post(PostInput(**data), _author_from_jwt())
        return jsonify({"post_id": post_id, "message": "글이 작성되었습니다"}), 201
    except ValidationError as err:
        return _validation_error(err)
    except WriteError as e:
        logging.error(f"게시글 작성 중 오류 발생: {e}", exc_info=True)
        return jsonify({"error_code": "POST_CREATION_FAILED", "message": "글 작성에 실패했습니다"}), 500


@posts_bp.route('/<string:post_id>', methods=['PUT'])
@jwt_required()
async def update_post(post_id: str):
    """특정 게시글을 수정합니다. (작성자 본인만 가능)"""
    repository = current_app.services['post_repository']
    mutation_service = current_app.services['post_mutations']
    try:
        data = PostInputSchema().load(request.get_json(silent=True) or {})
    except ValidationError as err:
        return _validation_error(err)

    exists, author_id = await repository.get_author_id(post_id)
    if not exists:
        return jsonify({"error_code": "POST_NOT_FOUND", "message": "게시물을 찾을 수 없습니다."}), 404
    if author_id != get_jwt_identity():
        return jsonify({"error_code": "FORBIDDEN", "message": "본인이 작성한 글만 수정할 수 있습니다."}), 403

    try:
        await mutation_service.update_post(post_id, PostInput(**data))
        return jsonify({"post_id": post_id, "message": "글이 수정되었습니다"}), 200
    except NotFoundError:
        return jsonify({"error_code": "POST_NOT_FOUND", "message": "게시물을 찾을 수 없습니다."}), 404
    except WriteError as e:
        logging.error(f"게시글 수정 중 오류 발생 (post_id: {post_id}): {e}", exc_info=True)
        return jsonify({"error_code": "POST_UPDATE_FAILED", "message": "글 수정에 실패했습니다"}), 500


@posts_bp.route('/<string:post_id>', methods=['DELETE'])
@jwt_required()
async def delete_post(post_id: str):
    """
    특정 게시글을 삭제합니다. (작성자 본인만 가능)
    이미 없는 게시글이면 그대로 204를 반환합니다.
    """
    repository = current_app.services['post_repository']
    mutation_service = current_app.services['post_mutations']

    exists, author_id = await repository.get_author_id(post_id)
    if exists and author_id != get_jwt_identity():
        return jsonify({"error_code": "FORBIDDEN", "message": "본인이 작성한 글만 삭제할 수 있습니다."}), 403

    try:
        await mutation_service.delete_post(post_id)
        return Response(status=204)
    except WriteError as e:
        logging.error(f"게시글 삭제 중 오류 발생 (post_id: {post_id}): {e}", exc_info=True)
        return jsonify({"error_code": "POST_DELETE_FAILED", "message": "글 삭제에 실패했습니다"}), 500
