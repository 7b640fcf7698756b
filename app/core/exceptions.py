# app/core/exceptions.py
"""
게시글 데이터 계층에서 사용하는 예외 클래스 모음.

- NotFoundError: 요청한 게시글이 존재하지 않음 (get_post는 예외 대신 None 반환)
- WriteError: 작성/수정/삭제가 저장소에서 실패함 (자동 재시도 없음)
- SubscriptionError: 실시간 구독 스트림이 실패함 (on_error 콜백으로만 전달)
"""


class PostError(Exception):
    """게시글 관련 예외의 기반 클래스."""
    error_code = "POST_ERROR"

    def __init__(self, message: str, post_id: str = None):
        super().__init__(message)
        self.message = message
        self.post_id = post_id


class NotFoundError(PostError):
    error_code = "POST_NOT_FOUND"


class WriteError(PostError):
    error_code = "POST_WRITE_FAILED"

    def __init__(self, message: str, post_id: str = None, operation: str = None):
        super().__init__(message, post_id)
        self.operation = operation


class SubscriptionError(PostError):
    error_code = "POST_SUBSCRIPTION_FAILED"
