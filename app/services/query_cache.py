# app/services/query_cache.py
"""
게시글 조회 결과 캐시

목록/상세 조회 결과를 튜플 키로 보관하고, 쓰기 성공 후 키 접두사 단위로 무효화합니다.
키 구성은 post_query_keys를 통해서만 만듭니다.
"""

import logging
import threading
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

CacheKey = Tuple[Any, ...]


class PostQueryKeys:
    """게시글 쿼리 키 팩토리. lists()로 무효화하면 모든 목록 캐시가 함께 지워집니다."""

    def all(self) -> CacheKey:
        return ('posts',)

    def lists(self) -> CacheKey:
        return self.all() + ('list',)

    def list(self, **filters) -> CacheKey:
        return self.lists() + tuple(sorted(filters.items()))

    def details(self) -> CacheKey:
        return self.all() + ('detail',)

    def detail(self, post_id: str) -> CacheKey:
        return self.details() + (post_id,)


post_query_keys = PostQueryKeys()


class QueryCache:
    """
    스레드 안전한 키-값 캐시. ttl_seconds가 0 이하이면 만료 없이 보관합니다.
    """

    def __init__(self, ttl_seconds: float = 60):
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[CacheKey, Tuple[float, Any]] = {}
        # 접두사별 무효화 횟수
        self._generations: Dict[CacheKey, int] = {}
        self._lock = threading.Lock()

    def get(self, key: CacheKey) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if self.ttl_seconds > 0 and time.monotonic() - stored_at > self.ttl_seconds:
                del self._entries[key]
                return None
            return value

    def set(self, key: CacheKey, value: Any) -> None:
        with self._lock:
            self._entries[key] = (time.monotonic(), value)

    async def fetch(self, key: CacheKey, loader: Callable[[], Awaitable[Any]]) -> Any:
        """
        캐시에 값이 있으면 반환하고, 없으면 loader를 실행해 결과를 저장합니다. None은 캐시하지 않습니다.
        loader 실행 중에 key가 무효화되었다면 결과를 반환만 하고 저장하지 않습니다.
        """
        cached = self.get(key)
        if cached is not None:
            return cached
        generation = self._generation(key)
        value = await loader()
        if value is not None:
            with self._lock:
                if self._generation_locked(key) == generation:
                    self._entries[key] = (time.monotonic(), value)
        return value

    def invalidate(self, key: CacheKey) -> int:
        """key로 시작하는 모든 항목을 제거하고 제거된 개수를 반환합니다."""
        size = len(key)
        with self._lock:
            self._generations[key] = self._generations.get(key, 0) + 1
            stale = [k for k in self._entries if k[:size] == key]
            for k in stale:
                del self._entries[k]
        logger.info(f"쿼리 캐시 무효화: {key} ({len(stale)}건)")
        return len(stale)

    def _generation(self, key: CacheKey) -> int:
        with self._lock:
            return self._generation_locked(key)

    def _generation_locked(self, key: CacheKey) -> int:
        return sum(self._generations.get(key[:size], 0) for size in range(len(key) + 1))

    def clear(self) -> None:
        with self._lock:
            self._generations[()] = self._generations.get((), 0) + 1
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
