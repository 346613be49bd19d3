"""
이벤트 라우터

도메인 이벤트(메시지, 알림, 삭제, 룸 브로드캐스트)를 현재 접속 중인 연결로 전달합니다.

전달은 최선 노력(best-effort) 방식입니다.
    - 접속 중인 대상에게 최대 한 번 전송하고, 접속하지 않은 대상은 조용히 건너뜁니다.
    - 클라이언트 응답(ack)을 기다리지 않으며 재시도하지 않습니다.
    - 어떤 경우에도 호출자에게 예외를 전파하지 않습니다. 메시지 저장은 이미
      커밋되었으므로 전달 실패가 저장 트랜잭션에 영향을 주어서는 안 됩니다.
"""
import traceback
from typing import Any, Iterable, Optional, Union

from bson import ObjectId
from fastapi.encoders import jsonable_encoder

from .interfaces import RealtimeTransport
from .models import (
    RealtimeEvent,
    DeliveryReport,
    DeletionScope,
    DirectMessage,
    GroupMessage,
    RoomBroadcast,
    Notification,
    Deletion,
    OutboundEvent,
)
from .registry import ConnectionRegistry
from ..core.logging_utils import get_logger

logger = get_logger(__name__)


def _event_name(event: Union[str, RealtimeEvent]) -> str:
    return event.value if isinstance(event, RealtimeEvent) else str(event)


class EventRouter:
    """도메인 이벤트를 연결로 라우팅하는 클래스"""

    def __init__(self, registry: ConnectionRegistry, transport: RealtimeTransport, namespace: str = "/"):
        """
        라우터 초기화

        Args:
            registry: 사용자 -> 연결 매핑 레지스트리
            transport: 실시간 전송 계층 (socketio.AsyncServer)
            namespace: Socket.IO 네임스페이스
        """
        self.logger = logger
        self.registry = registry
        self.transport = transport
        self.namespace = namespace

    def _serialize(self, data: Any) -> Any:
        """
        datetime, ObjectId, pydantic 모델 등을 JSON 호환 형태로 변환합니다.

        변환할 수 없는 데이터는 예외를 그대로 올리며, 호출한 전달 메서드가 실패로 집계합니다.
        """
        return jsonable_encoder(data, custom_encoder={ObjectId: str})

    def _encoding_failed(self, report: DeliveryReport, targets: int, error: Exception) -> DeliveryReport:
        """직렬화 실패 시 전송하지 않고 대상 수만큼 실패로 집계합니다."""
        report.attempted += targets
        report.failed += targets
        self.logger.error(f"이벤트 데이터 직렬화 실패 - 이벤트: {report.event}, 대상: {targets}, 오류: {str(error)}")
        return report

    async def _emit_to_sid(self, event_name: str, data: Any, sid: str) -> bool:
        """단일 연결로 전송합니다. 전송 계층 오류는 로그만 남깁니다."""
        try:
            await self.transport.emit(event_name, data, to=sid, namespace=self.namespace)
            return True
        except Exception as e:
            self.logger.error(f"이벤트 전송 실패 - 이벤트: {event_name}, SID: {sid}, 오류: {str(e)}")
            self.logger.debug(traceback.format_exc())
            return False

    async def _deliver_serialized(self, recipient_id: str, event_name: str, data: Any,
                                  report: DeliveryReport) -> None:
        sid = self.registry.resolve(recipient_id)
        if sid is None:
            report.offline += 1
            self.logger.debug(f"대상 사용자가 접속 중이 아님 - 사용자: {recipient_id}, 이벤트: {event_name}")
            return

        report.attempted += 1
        if not await self._emit_to_sid(event_name, data, sid):
            report.failed += 1

    async def deliver_direct(self, recipient_id: str, payload: Any,
                             event: Union[str, RealtimeEvent] = RealtimeEvent.RECEIVE_MESSAGE) -> DeliveryReport:
        """
        단일 사용자에게 전달합니다. 접속 중이 아니면 조용히 버립니다.

        Args:
            recipient_id: 수신자 ID
            payload: 전달할 데이터
            event: 이벤트 이름 (기본값: receive-message)

        Returns:
            전달 결과
        """
        event_name = _event_name(event)
        report = DeliveryReport(event=event_name)
        try:
            data = self._serialize(payload)
        except Exception as e:
            return self._encoding_failed(report, 1, e)

        try:
            await self._deliver_serialized(recipient_id, event_name, data, report)
        except Exception as e:
            report.failed += 1
            self.logger.error(f"개인 전달 중 오류 발생 - 사용자: {recipient_id}, 오류: {str(e)}")
            self.logger.error(traceback.format_exc())
        return report

    async def deliver_to_group(self, group_id: str, member_ids: Iterable[str], payload: Any,
                               event: Union[str, RealtimeEvent] = RealtimeEvent.RECEIVE_MESSAGE,
                               exclude: Optional[str] = None) -> DeliveryReport:
        """
        그룹 구성원 각각에게 deliver_direct 와 같은 방식으로 전달합니다.

        구성원 목록은 호출자가 저장된 그룹에서 읽어 전달하며 라우터는 권한을 확인하지 않습니다.
        한 구성원에 대한 실패가 다른 구성원 전달을 막지 않습니다.

        Args:
            group_id: 그룹 ID (로그용)
            member_ids: 구성원 ID 목록
            payload: 전달할 데이터
            event: 이벤트 이름
            exclude: 제외할 사용자 ID (선택적)

        Returns:
            전달 결과
        """
        event_name = _event_name(event)
        report = DeliveryReport(event=event_name)
        try:
            # 중복 구성원에게 두 번 보내지 않도록 순서를 유지하며 중복 제거
            members = [m for m in dict.fromkeys(str(m) for m in member_ids) if m != exclude]
        except Exception as e:
            self.logger.error(f"그룹 구성원 목록 처리 중 오류 발생 - 그룹: {group_id}, 오류: {str(e)}")
            return report

        try:
            data = self._serialize(payload)
        except Exception as e:
            return self._encoding_failed(report, len(members), e)

        for member_id in members:
            try:
                await self._deliver_serialized(member_id, event_name, data, report)
            except Exception as e:
                report.failed += 1
                self.logger.error(f"그룹 구성원 전달 중 오류 발생 - 그룹: {group_id}, 사용자: {member_id}, 오류: {str(e)}")

        self.logger.info(
            f"그룹 전달 완료 - 그룹: {group_id}, 이벤트: {event_name}, "
            f"구성원: {len(members)}, 시도: {report.attempted}, 실패: {report.failed}"
        )
        return report

    async def deliver_to_room(self, room_id: str, payload: Any,
                              event: Union[str, RealtimeEvent],
                              skip_sid: Optional[str] = None) -> DeliveryReport:
        """
        룸에 참가한 모든 연결에 브로드캐스트합니다.

        레지스트리와 무관하게 전송 계층의 룸 구성원에게 전달됩니다.
        """
        event_name = _event_name(event)
        report = DeliveryReport(event=event_name, attempted=1)
        try:
            await self.transport.emit(event_name, self._serialize(payload), room=room_id,
                                      skip_sid=skip_sid, namespace=self.namespace)
        except Exception as e:
            report.failed += 1
            self.logger.error(f"룸 브로드캐스트 실패 - 룸: {room_id}, 이벤트: {event_name}, 오류: {str(e)}")
            self.logger.error(traceback.format_exc())
        return report

    async def deliver_notification(self, recipient_id: str, notification: Any) -> DeliveryReport:
        """알림 전용 채널(new-notification)로 단일 사용자에게 전달합니다."""
        return await self.deliver_direct(recipient_id, notification, event=RealtimeEvent.NEW_NOTIFICATION)

    async def deliver_deletion_notice(self, target_id: str, scope: DeletionScope) -> DeliveryReport:
        """
        이미 전달된 메시지가 삭제되었음을 알립니다.

        Args:
            target_id: 삭제된 메시지 ID
            scope: 단일 수신자 또는 그룹 구성원
        """
        payload = {"messageId": str(target_id)}
        if scope.is_group:
            return await self.deliver_to_group(scope.group_id, scope.member_ids, payload,
                                               event=RealtimeEvent.MESSAGE_DELETED)
        return await self.deliver_direct(scope.recipient_id, payload, event=RealtimeEvent.MESSAGE_DELETED)

    async def deliver(self, event: OutboundEvent) -> DeliveryReport:
        """OutboundEvent 종류에 따라 적절한 전달 방식을 선택합니다."""
        if isinstance(event, DirectMessage):
            return await self.deliver_direct(event.recipient_id, event.payload)
        if isinstance(event, GroupMessage):
            return await self.deliver_to_group(event.group_id, event.member_ids, event.payload)
        if isinstance(event, RoomBroadcast):
            return await self.deliver_to_room(event.room_id, event.payload, event.event)
        if isinstance(event, Notification):
            return await self.deliver_notification(event.recipient_id, event.payload)
        if isinstance(event, Deletion):
            return await self.deliver_deletion_notice(event.target_id, event.scope)

        self.logger.warning(f"알 수 없는 이벤트 종류 - {type(event).__name__}")
        return DeliveryReport(event="unknown")
