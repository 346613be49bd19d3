"""
Socket.IO 서버 관리 클래스

Socket.IO 서버를 초기화하고 연결/해제/수신 이벤트를 생명주기 관리자에 연결합니다.
HTTP 요청 처리 코드가 DB 쓰기 이후 호출하는 알림 메서드(notify_*)도 제공합니다.

전역 싱글톤을 두지 않습니다. create_socket_manager 로 만든 인스턴스를
애플리케이션 상태(app.state)에 보관하고 필요한 곳에 전달합니다.
"""
from typing import Any, Dict, Iterable, List, Optional, Union

import socketio

from .event_router import EventRouter
from .interfaces import GroupDirectory, IdentityVerifier, MessageStore, RealtimeTransport
from .lifecycle import SessionLifecycle
from .models import INBOUND_EVENTS, DeletionScope, DeliveryReport, OutboundEvent, RealtimeEvent
from .registry import ConnectionRegistry
from .rooms import RoomMembership
from .service import RealtimeService
from ..core.config import Settings, get_settings
from ..core.logging_utils import get_logger

logger = get_logger(__name__)


class SocketManager:
    """실시간 통신 서비스"""

    def __init__(self,
                 verifier: IdentityVerifier,
                 message_store: MessageStore,
                 group_directory: GroupDirectory,
                 settings: Optional[Settings] = None,
                 transport: Optional[RealtimeTransport] = None,
                 registry: Optional[ConnectionRegistry] = None,
                 namespace: str = "/"):
        """
        Socket.IO 매니저 초기화

        Args:
            verifier: 토큰 검증기
            message_store: 메시지 저장소
            group_directory: 그룹 구성원 조회
            settings: 설정. None 인 경우 get_settings() 사용
            transport: 전송 계층. None 인 경우 socketio.AsyncServer 생성
            registry: 연결 레지스트리. None 인 경우 새로 생성
            namespace: Socket.IO 네임스페이스
        """
        self.logger = logger
        self.settings = settings or get_settings()
        self.namespace = namespace

        if transport is None:
            transport = socketio.AsyncServer(
                async_mode="asgi",
                cors_allowed_origins=self.settings.WS_CORS_ORIGINS,
                logger=False,  # 핑/퐁 메시지 로깅 비활성화
                engineio_logger=self.settings.WS_ENGINEIO_LOGGER,
                ping_timeout=self.settings.WS_PING_TIMEOUT,
                ping_interval=self.settings.WS_PING_INTERVAL,
                max_http_buffer_size=self.settings.WS_MAX_HTTP_BUFFER_SIZE,
            )
        self.sio = transport

        # 구성 요소는 모두 같은 레지스트리 인스턴스를 공유한다
        self.registry = registry or ConnectionRegistry()
        self.rooms = RoomMembership(self.sio, namespace=namespace)
        self.router = EventRouter(self.registry, self.sio, namespace=namespace)
        self.service = RealtimeService(self.router, self.rooms, message_store, group_directory)
        self.lifecycle = SessionLifecycle(self.registry, verifier, self.service, self.sio, namespace=namespace)

        if isinstance(self.sio, socketio.AsyncServer):
            self._setup_event_handlers()

    def _setup_event_handlers(self):
        """소켓 이벤트 핸들러 등록"""

        async def connect(sid, environ, auth=None):
            """연결 이벤트 핸들러 - 인증 실패 시 ConnectionRefusedError 로 핸드셰이크 거부"""
            await self.lifecycle.connect(sid, environ, auth)

        async def disconnect(sid, *args):
            """연결 해제 이벤트 핸들러"""
            self.lifecycle.disconnect(sid)

        self.sio.on("connect", connect, namespace=self.namespace)
        self.sio.on("disconnect", disconnect, namespace=self.namespace)

        for event in INBOUND_EVENTS:
            self.sio.on(event.value, self._make_dispatcher(event.value), namespace=self.namespace)

    def _make_dispatcher(self, event_name: str):
        async def dispatcher(sid, *args):
            return await self.lifecycle.dispatch(sid, event_name, *args)

        dispatcher.__name__ = f"on_{event_name.replace('-', '_')}"
        return dispatcher

    def create_asgi_app(self, other_asgi_app=None) -> socketio.ASGIApp:
        """FastAPI 앱 옆에 마운트할 Socket.IO ASGI 앱을 생성합니다."""
        return socketio.ASGIApp(
            self.sio,
            other_asgi_app=other_asgi_app,
            socketio_path=self.settings.SOCKET_PATH,
        )

    # ------------------------------------------------------------------
    # HTTP 협력자용 알림 메서드 (DB 커밋 이후 호출, 예외를 던지지 않음)
    # ------------------------------------------------------------------

    async def notify_user(self, user_id: str, notification: Any) -> DeliveryReport:
        """사용자에게 new-notification 이벤트를 보냅니다."""
        return await self.router.deliver_notification(user_id, notification)

    async def notify_users(self, user_ids: Iterable[str], notification_by_user: Dict[str, Any]) -> DeliveryReport:
        """
        여러 사용자에게 각자의 알림을 보냅니다. (관리자 일괄 알림)

        Args:
            user_ids: 대상 사용자 ID 목록
            notification_by_user: 사용자 ID -> 저장된 알림
        """
        report = DeliveryReport(event=RealtimeEvent.NEW_NOTIFICATION.value)
        for user_id in user_ids:
            notification = notification_by_user.get(user_id)
            if notification is None:
                continue
            report.merge(await self.router.deliver_notification(user_id, notification))
        return report

    async def notify_group(self, group_id: str, member_ids: Iterable[str], payload: Any,
                           event: Union[str, RealtimeEvent] = RealtimeEvent.RECEIVE_MESSAGE) -> DeliveryReport:
        """그룹 구성원 중 접속 중인 사용자에게 전달합니다."""
        return await self.router.deliver_to_group(group_id, member_ids, payload, event=event)

    async def broadcast_to_room(self, room_id: str, event_name: Union[str, RealtimeEvent],
                                payload: Any) -> DeliveryReport:
        """룸(그룹 채팅, 게시물 댓글, 스트림)에 이벤트를 브로드캐스트합니다."""
        return await self.router.deliver_to_room(room_id, payload, event_name)

    async def notify_deletion(self, target_id: str, scope: DeletionScope) -> DeliveryReport:
        """메시지 삭제를 알립니다."""
        return await self.router.deliver_deletion_notice(target_id, scope)

    async def deliver(self, event: OutboundEvent) -> DeliveryReport:
        return await self.router.deliver(event)

    async def emit_message(self, message: Dict[str, Any], sender_id: str,
                           receiver_id: Optional[str] = None, group_id: Optional[str] = None) -> None:
        """HTTP 로 저장된 메시지를 발신자 에코와 함께 수신자에게 전달합니다."""
        await self.service.route_saved_message(message, sender_id, receiver_id=receiver_id, group_id=group_id)

    # ------------------------------------------------------------------
    # 조회
    # ------------------------------------------------------------------

    def is_online(self, user_id: str) -> bool:
        return self.registry.is_online(user_id)

    def get_stats(self) -> Dict[str, Any]:
        return self.registry.get_stats()

    def online_users(self) -> List[str]:
        return self.registry.online_users()


def create_socket_manager(verifier: IdentityVerifier,
                          message_store: MessageStore,
                          group_directory: GroupDirectory,
                          settings: Optional[Settings] = None,
                          transport: Optional[RealtimeTransport] = None) -> SocketManager:
    """
    SocketManager 인스턴스를 생성합니다.

    애플리케이션 시작 시 한 번 호출하고, 결과를 app.state.socket_manager 에 보관합니다.
    """
    manager = SocketManager(
        verifier=verifier,
        message_store=message_store,
        group_directory=group_directory,
        settings=settings,
        transport=transport,
    )
    logger.info("SocketManager 가 생성되었습니다.")
    return manager
