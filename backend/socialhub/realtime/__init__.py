"""
SocialHub 실시간 통신 모듈

Socket.IO 를 사용한 접속 상태 관리와 메시지/알림 팬아웃 기능을 제공합니다.
"""

# 모델 노출
from .models import (
    RealtimeEvent,
    SessionState,
    Connection,
    SocketError,
    DeliveryReport,
    DeletionScope,
    DirectMessage,
    GroupMessage,
    RoomBroadcast,
    Notification,
    Deletion,
    OutboundEvent,
)

# 구성 요소 노출
from .registry import ConnectionRegistry
from .rooms import RoomMembership
from .event_router import EventRouter
from .service import RealtimeService
from .lifecycle import SessionLifecycle
from .manager import SocketManager, create_socket_manager

__all__ = [
    # 모델
    "RealtimeEvent",
    "SessionState",
    "Connection",
    "SocketError",
    "DeliveryReport",
    "DeletionScope",
    "DirectMessage",
    "GroupMessage",
    "RoomBroadcast",
    "Notification",
    "Deletion",
    "OutboundEvent",

    # 구성 요소
    "ConnectionRegistry",
    "RoomMembership",
    "EventRouter",
    "RealtimeService",
    "SessionLifecycle",
    "SocketManager",
    "create_socket_manager",
]
