"""
룸 멤버십

전송 계층의 룸 기능(enter_room / rooms)을 얇게 감쌉니다.
룸 구성원 정보는 전송 계층만 보관하며 별도 인덱스를 두지 않습니다.
연결이 끊기면 전송 계층이 모든 룸에서 자동으로 제거합니다.
"""
from typing import Any, Dict, List, Union

from .interfaces import RealtimeTransport
from .models import RealtimeEvent
from ..core.logging_utils import get_logger

logger = get_logger(__name__)


class RoomMembership:
    """전송 계층 기반 룸 멤버십"""

    def __init__(self, transport: RealtimeTransport, namespace: str = "/"):
        self.transport = transport
        self.namespace = namespace

    async def join(self, sid: str, room_id: str) -> None:
        """연결을 룸에 참가시킵니다. 권한 확인은 REST 계층의 책임입니다."""
        await self.transport.enter_room(sid, room_id, namespace=self.namespace)
        logger.info(f"룸 참가 - SID: {sid}, 룸: {room_id}")

    def rooms_of(self, sid: str) -> List[str]:
        """연결이 참가 중인 룸 목록 (연결 자신의 sid 룸 제외)"""
        return [room for room in self.transport.rooms(sid, namespace=self.namespace) if room != sid]

    async def relay(self, sid: str, room_id: str, event: Union[str, RealtimeEvent],
                    payload: Any) -> bool:
        """
        발신자를 제외한 룸 구성원에게 페이로드를 그대로 전달합니다.

        Returns:
            전송 시도 성공 여부 (실패는 로그만 남긴다)
        """
        event_name = event.value if isinstance(event, RealtimeEvent) else event
        try:
            await self.transport.emit(event_name, payload, room=room_id,
                                      skip_sid=sid, namespace=self.namespace)
            return True
        except Exception as e:
            logger.error(f"룸 릴레이 실패 - 이벤트: {event_name}, 룸: {room_id}, SID: {sid}, 오류: {str(e)}",
                         exc_info=True)
            return False

    @staticmethod
    def with_sender(sid: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """화면 공유 시그널링용: 발신 연결 ID를 덧붙인 페이로드"""
        payload: Dict[str, Any] = {"senderSocketId": sid}
        payload.update(fields)
        return payload
