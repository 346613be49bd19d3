"""
실시간 수신 이벤트 비즈니스 로직 서비스

클라이언트가 보낸 이벤트(룸 참가, 메시지 전송, WebRTC 시그널링)를 처리합니다.
메시지는 항상 저장소에 먼저 저장한 뒤 라우터로 전달합니다.
"""
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from pydantic import ValidationError

from .models import RealtimeEvent, Connection, SendMessagePayload, StreamSignal
from .interfaces import MessageStore, GroupDirectory
from .event_router import EventRouter
from .rooms import RoomMembership
from ..core.exceptions import InvalidEventPayload
from ..core.logging_utils import get_logger

logger = get_logger(__name__)

EventHandler = Callable[..., Awaitable[Any]]


def _require_room_id(value: Any, field: str = "roomId") -> str:
    """문자열 또는 {"roomId": ...} 형태에서 룸 ID를 꺼냅니다."""
    if isinstance(value, dict):
        value = value.get(field) or value.get("streamId") or value.get("roomId")
    if not isinstance(value, str) or not value.strip():
        raise InvalidEventPayload(f"유효한 {field} 가 필요합니다.", {"received": repr(value)[:100]})
    return value


class RealtimeService:
    """실시간 수신 이벤트 처리 서비스"""

    def __init__(self, router: EventRouter, rooms: RoomMembership,
                 message_store: MessageStore, group_directory: GroupDirectory):
        """서비스 초기화

        Args:
            router: 이벤트 라우터
            rooms: 룸 멤버십
            message_store: 메시지 저장소 (영속화 협력자)
            group_directory: 그룹 구성원 조회 협력자
        """
        self.logger = logger
        self.router = router
        self.rooms = rooms
        self.message_store = message_store
        self.group_directory = group_directory

        # 이벤트 핸들러 레지스트리
        self._event_handlers: Dict[str, EventHandler] = {}
        self._register_default_handlers()

    def _register_default_handlers(self):
        """기본 이벤트 핸들러를 등록합니다."""
        self.register_event_handler(RealtimeEvent.JOIN_ROOM, self._handle_join_room)
        self.register_event_handler(RealtimeEvent.JOIN_STREAM, self._handle_join_stream)
        self.register_event_handler(RealtimeEvent.SEND_MESSAGE, self._handle_send_message)

        # WebRTC 시그널링 - (streamId, payload) 를 그대로 릴레이
        for event in (RealtimeEvent.OFFER, RealtimeEvent.ANSWER, RealtimeEvent.ICE_CANDIDATE):
            self.register_event_handler(event, self._make_signal_relay(event))

        # 화면 공유 - {streamId, ...} 에 발신 연결 ID를 덧붙여 릴레이
        for event in (RealtimeEvent.SCREEN_SHARE_OFFER, RealtimeEvent.SCREEN_SHARE_ANSWER,
                      RealtimeEvent.SCREEN_SHARE_ICE_CANDIDATE, RealtimeEvent.START_SCREEN_SHARE,
                      RealtimeEvent.STOP_SCREEN_SHARE):
            self.register_event_handler(event, self._make_screen_share_relay(event))

    def register_event_handler(self, event: Union[str, RealtimeEvent], handler_func: EventHandler) -> None:
        """이벤트 핸들러를 등록합니다."""
        name = event.value if isinstance(event, RealtimeEvent) else event
        self._event_handlers[name] = handler_func
        self.logger.debug(f"이벤트 핸들러 등록됨 - 이벤트: {name}")

    @property
    def event_handlers(self) -> Dict[str, EventHandler]:
        return dict(self._event_handlers)

    # ------------------------------------------------------------------
    # 룸
    # ------------------------------------------------------------------

    async def _handle_join_room(self, connection: Connection, room_id: Any = None, *_) -> Dict[str, Any]:
        room_id = _require_room_id(room_id)
        await self.rooms.join(connection.sid, room_id)
        self.logger.info(f"사용자 {connection.user_id} 가 룸 {room_id} 에 참가")
        return {"success": True, "roomId": room_id}

    async def _handle_join_stream(self, connection: Connection, stream_id: Any = None, *_) -> Dict[str, Any]:
        stream_id = _require_room_id(stream_id, field="streamId")
        await self.rooms.join(connection.sid, stream_id)
        self.logger.info(f"사용자 {connection.user_id} 가 스트림 {stream_id} 에 참가")
        return {"success": True, "streamId": stream_id}

    # ------------------------------------------------------------------
    # 메시지
    # ------------------------------------------------------------------

    async def _handle_send_message(self, connection: Connection, data: Any = None, *_) -> Dict[str, Any]:
        """
        send-message 이벤트를 처리합니다.

        발신자는 항상 인증된 연결의 사용자이며 페이로드의 senderId 는 무시합니다.
        """
        if not isinstance(data, dict):
            raise InvalidEventPayload("send-message 데이터는 객체여야 합니다.")
        try:
            payload = SendMessagePayload.model_validate(data)
        except ValidationError as e:
            raise InvalidEventPayload(
                "send-message 데이터가 유효하지 않습니다.",
                {"errors": [err["msg"] for err in e.errors()]}
            )

        sender_id = connection.user_id
        message = await self.message_store.save_message(
            sender_id=sender_id,
            content=payload.content,
            receiver_id=None if payload.is_group_message else payload.receiver_id,
            group_id=payload.group_id if payload.is_group_message else None,
        )
        self.logger.info(f"메시지 저장 완료 - 발신자: {sender_id}, 메시지 ID: {message.get('id')}")

        if payload.is_group_message:
            return await self._route_group_message(sender_id, payload.group_id, message)
        return await self._route_direct_message(sender_id, payload.receiver_id, message)

    async def _route_direct_message(self, sender_id: str, receiver_id: str,
                                    message: Dict[str, Any]) -> Dict[str, Any]:
        report = await self.router.deliver_direct(receiver_id, message)
        await self.router.deliver_notification(receiver_id, {
            "type": "message",
            "senderId": sender_id,
            "data": message,
        })
        return {"success": True, "message": message, "delivered": report.delivered}

    async def _route_group_message(self, sender_id: str, group_id: str, message: Dict[str, Any],
                                   exclude_sender: bool = False) -> Dict[str, Any]:
        member_ids = await self.group_directory.get_member_ids(group_id)
        if member_ids is None:
            # 메시지는 이미 저장되었으므로 전달만 생략
            self.logger.error(f"그룹을 찾을 수 없음 - 그룹: {group_id}, 메시지 ID: {message.get('id')}")
            return {"success": True, "message": message, "delivered": 0}

        report = await self.router.deliver_to_group(
            group_id, member_ids, message, exclude=sender_id if exclude_sender else None
        )
        await self.router.deliver_to_group(group_id, member_ids, {
            "type": "group-message",
            "groupId": group_id,
            "senderId": sender_id,
            "data": message,
        }, event=RealtimeEvent.NEW_NOTIFICATION)
        return {"success": True, "message": message, "delivered": report.delivered}

    # ------------------------------------------------------------------
    # 시그널링
    # ------------------------------------------------------------------

    def _make_signal_relay(self, event: RealtimeEvent) -> EventHandler:
        async def relay(connection: Connection, stream_id: Any = None, signal: Any = None, *_) -> Dict[str, Any]:
            stream_id = _require_room_id(stream_id, field="streamId")
            await self.rooms.relay(connection.sid, stream_id, event, signal)
            return {"success": True}

        relay.__name__ = f"relay_{event.name.lower()}"
        return relay

    def _make_screen_share_relay(self, event: RealtimeEvent) -> EventHandler:
        async def relay(connection: Connection, data: Any = None, *_) -> Dict[str, Any]:
            if not isinstance(data, dict):
                raise InvalidEventPayload(f"{event.value} 데이터는 객체여야 합니다.")
            try:
                signal = StreamSignal.model_validate(data)
            except ValidationError as e:
                raise InvalidEventPayload(
                    f"{event.value} 데이터가 유효하지 않습니다.",
                    {"errors": [err["msg"] for err in e.errors()]}
                )
            payload = self.rooms.with_sender(connection.sid, signal.relay_fields())
            await self.rooms.relay(connection.sid, signal.stream_id, event, payload)
            return {"success": True}

        relay.__name__ = f"relay_{event.name.lower()}"
        return relay

    # ------------------------------------------------------------------
    # HTTP 협력자용
    # ------------------------------------------------------------------

    async def route_saved_message(self, message: Dict[str, Any], sender_id: str,
                                  receiver_id: Optional[str] = None,
                                  group_id: Optional[str] = None) -> None:
        """
        HTTP 경로로 이미 저장된 메시지(예: 첨부파일 메시지)를 전달합니다.

        발신자의 다른 화면에도 보이도록 발신자 연결에 먼저 에코한 뒤 수신자에게 전달합니다.
        """
        try:
            await self.router.deliver_direct(sender_id, message)
            if group_id:
                await self._route_group_message(sender_id, group_id, message, exclude_sender=True)
            elif receiver_id:
                await self._route_direct_message(sender_id, receiver_id, message)
            else:
                self.logger.error(f"수신자 정보 없는 메시지 - 메시지 ID: {message.get('id')}")
        except Exception as e:
            self.logger.error(f"저장된 메시지 전달 중 오류 발생 - 오류: {str(e)}", exc_info=True)
