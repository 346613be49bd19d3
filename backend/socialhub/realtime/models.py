"""
실시간 모듈의 데이터 모델 정의

소켓 이벤트 이름, 연결(Connection) 상태, 발신 이벤트(OutboundEvent) 등
실시간 통신에 필요한 데이터 구조를 정의합니다.
"""
import threading
from enum import Enum
from datetime import datetime
from zoneinfo import ZoneInfo
from typing import Annotated, Any, Awaitable, Callable, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, model_validator

from ..core.exceptions import ConnectionStateError


class RealtimeEvent(str, Enum):
    """소켓 이벤트 이름 열거형"""
    # 수신 이벤트
    JOIN_ROOM = "join-room"
    JOIN_STREAM = "join-stream"
    SEND_MESSAGE = "send-message"
    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"
    SCREEN_SHARE_OFFER = "screen-share-offer"
    SCREEN_SHARE_ANSWER = "screen-share-answer"
    SCREEN_SHARE_ICE_CANDIDATE = "screen-share-ice-candidate"
    START_SCREEN_SHARE = "start-screen-share"
    STOP_SCREEN_SHARE = "stop-screen-share"

    # 발신 이벤트
    RECEIVE_MESSAGE = "receive-message"
    NEW_NOTIFICATION = "new-notification"
    MESSAGE_DELETED = "message-deleted"
    ERROR = "error"


# 클라이언트가 보낼 수 있는 비즈니스 이벤트
INBOUND_EVENTS = (
    RealtimeEvent.JOIN_ROOM,
    RealtimeEvent.JOIN_STREAM,
    RealtimeEvent.SEND_MESSAGE,
    RealtimeEvent.OFFER,
    RealtimeEvent.ANSWER,
    RealtimeEvent.ICE_CANDIDATE,
    RealtimeEvent.SCREEN_SHARE_OFFER,
    RealtimeEvent.SCREEN_SHARE_ANSWER,
    RealtimeEvent.SCREEN_SHARE_ICE_CANDIDATE,
    RealtimeEvent.START_SCREEN_SHARE,
    RealtimeEvent.STOP_SCREEN_SHARE,
)


class SessionState(str, Enum):
    """연결 상태 (disconnected 는 종료 상태)"""
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    ACTIVE = "active"
    DISCONNECTED = "disconnected"


_ALLOWED_TRANSITIONS = {
    SessionState.CONNECTING: {SessionState.AUTHENTICATING, SessionState.DISCONNECTED},
    SessionState.AUTHENTICATING: {SessionState.ACTIVE, SessionState.DISCONNECTED},
    SessionState.ACTIVE: {SessionState.DISCONNECTED},
    SessionState.DISCONNECTED: set(),
}

EventListener = Callable[..., Awaitable[Any]]


class Connection(BaseModel):
    """하나의 실시간 연결(소켓) 정보 모델"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    sid: str
    user_id: Optional[str] = None
    state: SessionState = SessionState.CONNECTING
    listeners_registered: bool = False
    listeners: Dict[str, List[EventListener]] = Field(default_factory=dict)
    connected_at: datetime = Field(default_factory=lambda: datetime.now(ZoneInfo("UTC")))

    _lock: threading.Lock = PrivateAttr(default_factory=threading.Lock)

    @property
    def is_active(self) -> bool:
        return self.state == SessionState.ACTIVE

    def transition(self, new_state: SessionState) -> None:
        """상태를 전이합니다. 허용되지 않는 전이는 ConnectionStateError."""
        with self._lock:
            if new_state == self.state:
                return
            if new_state not in _ALLOWED_TRANSITIONS[self.state]:
                raise ConnectionStateError(
                    f"허용되지 않는 상태 전이: {self.state.value} -> {new_state.value}",
                    {"sid": self.sid}
                )
            self.state = new_state

    def bind_user(self, user_id: str) -> None:
        """인증된 사용자 ID를 연결에 한 번만 바인딩합니다."""
        with self._lock:
            if self.user_id is not None and self.user_id != user_id:
                raise ConnectionStateError(
                    "이미 다른 사용자에게 바인딩된 연결입니다.",
                    {"sid": self.sid, "user_id": self.user_id}
                )
            self.user_id = user_id

    def claim_listener_registration(self) -> bool:
        """
        리스너 등록 권한을 획득합니다.

        플래그 확인과 설정을 하나의 락 안에서 처리하므로
        같은 연결에 대해 True 는 최대 한 번만 반환됩니다.
        """
        with self._lock:
            if self.listeners_registered:
                return False
            self.listeners_registered = True
            return True

    def add_listener(self, event: Union[str, RealtimeEvent], listener: EventListener) -> None:
        name = event.value if isinstance(event, RealtimeEvent) else event
        self.listeners.setdefault(name, []).append(listener)

    def get_listeners(self, event: Union[str, RealtimeEvent]) -> List[EventListener]:
        name = event.value if isinstance(event, RealtimeEvent) else event
        return list(self.listeners.get(name, []))


class SocketError(BaseModel):
    """소켓 오류 모델"""
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None


class DeliveryReport(BaseModel):
    """라우팅 결과 요약 (호출자가 반드시 확인할 필요는 없음)"""
    event: str
    attempted: int = 0
    offline: int = 0
    failed: int = 0

    @property
    def delivered(self) -> int:
        return self.attempted - self.failed

    def merge(self, other: "DeliveryReport") -> "DeliveryReport":
        self.attempted += other.attempted
        self.offline += other.offline
        self.failed += other.failed
        return self


# ---------------------------------------------------------------------------
# 발신 이벤트 (tagged union)
# ---------------------------------------------------------------------------

class DeletionScope(BaseModel):
    """삭제 알림 대상 - 단일 수신자 또는 그룹 구성원"""
    recipient_id: Optional[str] = None
    group_id: Optional[str] = None
    member_ids: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_target(self):
        if not self.recipient_id and not self.group_id:
            raise ValueError("recipient_id 또는 group_id 중 하나는 필요합니다.")
        if self.recipient_id and self.group_id:
            raise ValueError("recipient_id 와 group_id 는 동시에 지정할 수 없습니다.")
        return self

    @property
    def is_group(self) -> bool:
        return self.group_id is not None

    @classmethod
    def for_recipient(cls, recipient_id: str) -> "DeletionScope":
        return cls(recipient_id=recipient_id)

    @classmethod
    def for_group(cls, group_id: str, member_ids: List[str]) -> "DeletionScope":
        return cls(group_id=group_id, member_ids=list(member_ids))


class DirectMessage(BaseModel):
    kind: Literal["direct_message"] = "direct_message"
    recipient_id: str
    payload: Any = None


class GroupMessage(BaseModel):
    kind: Literal["group_message"] = "group_message"
    group_id: str
    member_ids: List[str] = Field(default_factory=list)
    payload: Any = None


class RoomBroadcast(BaseModel):
    kind: Literal["room_broadcast"] = "room_broadcast"
    room_id: str
    event: str
    payload: Any = None


class Notification(BaseModel):
    kind: Literal["notification"] = "notification"
    recipient_id: str
    payload: Any = None


class Deletion(BaseModel):
    kind: Literal["deletion"] = "deletion"
    target_id: str
    scope: DeletionScope


OutboundEvent = Annotated[
    Union[DirectMessage, GroupMessage, RoomBroadcast, Notification, Deletion],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# 수신 이벤트 페이로드
# ---------------------------------------------------------------------------

class SendMessagePayload(BaseModel):
    """send-message 이벤트 데이터 (클라이언트 필드명은 camelCase)"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    content: str = ""
    receiver_id: Optional[str] = Field(default=None, alias="receiverId")
    group_id: Optional[str] = Field(default=None, alias="groupId")
    is_group_message: Optional[bool] = Field(default=None, alias="isGroupMessage")

    @model_validator(mode="after")
    def check_target(self):
        if self.is_group_message is None:
            self.is_group_message = bool(self.group_id) and not self.receiver_id
        if self.is_group_message and not self.group_id:
            raise ValueError("그룹 메시지에는 groupId 가 필요합니다.")
        if not self.is_group_message and not self.receiver_id:
            raise ValueError("개인 메시지에는 receiverId 가 필요합니다.")
        return self


class StreamSignal(BaseModel):
    """화면 공유 시그널링 데이터 - streamId 외의 필드는 그대로 전달한다"""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    stream_id: str = Field(..., alias="streamId", min_length=1)

    def relay_fields(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})
