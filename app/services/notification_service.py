# app/services/notification_service.py
import logging
import threading
from collections import deque
from typing import Callable, List, Optional

from app.models.notification import Notification, NotificationType


class NotificationService:
    """
    작업 성공/실패 알림을 발행하는 공용 서비스 클래스.
    - 발행은 fire-and-forget입니다. 리스너에서 오류가 나도 호출자에게 전파하지 않습니다.
    - 최근 알림은 max_history개까지 메모리에 보관합니다.
    """
    def __init__(self, max_history: int = 100):
        self._history = deque(maxlen=max_history)
        self._listeners: List[Callable[[Notification], None]] = []
        self._lock = threading.Lock()

    def success(self, message: str) -> None:
        logging.info(f"[알림] {message}")
        self._publish(Notification(type=NotificationType.SUCCESS, message=message))

    def failure(self, message: str) -> None:
        logging.warning(f"[알림] {message}")
        self._publish(Notification(type=NotificationType.FAILURE, message=message))

    def add_listener(self, listener: Callable[[Notification], None]) -> Callable[[], None]:
        """알림 리스너를 등록하고, 등록 해제 함수를 반환합니다."""
        with self._lock:
            self._listeners.append(listener)

        def remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)
        return remove

    def recent(self, limit: Optional[int] = None) -> List[Notification]:
        """최근 알림을 최신순으로 반환합니다."""
        with self._lock:
            items = list(reversed(self._history))
        return items[:limit] if limit else items

    def _publish(self, notification: Notification) -> None:
        with self._lock:
            self._history.append(notification)
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(notification)
            except Exception as e:
                logging.error(f"알림 리스너 처리 중 오류 발생: {e}", exc_info=True)

