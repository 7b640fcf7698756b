# app/utils/__init__.py
"""
공용 유틸리티 패키지

- DateTimeUtils: 게시글 시각의 UTC 변환
- extract_first_image_url: 본문 HTML에서 썸네일 추출
"""

from .datetime_utils import DateTimeUtils
from .thumbnail import extract_first_image_url

__all__ = [
    'DateTimeUtils',
    'extract_first_image_url',
]
