# app/models/notification.py
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from app.utils.datetime_utils import DateTimeUtils


class NotificationType(Enum):
    """알림 유형을 정의하는 Enum 클래스"""
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


@dataclass
class Notification:
    """
    사용자에게 보여줄 작업 결과 알림 (토스트 메시지에 해당).
    """
    type: NotificationType
    message: str
    created_at: datetime = field(default_factory=DateTimeUtils.now)
