"""
실시간 모듈의 인터페이스 정의

실시간 코어가 의존하는 외부 협력자(전송 계층, 인증, 메시지 저장소, 그룹 조회)의
프로토콜을 정의합니다. 코어는 이 인터페이스에만 의존하므로 실제 Socket.IO 서버나
MongoDB 없이도 테스트할 수 있습니다.
"""
from typing import Any, Dict, List, Optional, Protocol, Set, runtime_checkable


@runtime_checkable
class RealtimeTransport(Protocol):
    """
    실시간 전송 계층 인터페이스

    socketio.AsyncServer 가 이 인터페이스를 그대로 만족합니다.
    emit 은 소켓의 송신 큐에 패킷을 넣을 뿐 클라이언트 응답을 기다리지 않습니다.
    """

    async def emit(self, event: str, data: Any = None, to: Optional[str] = None,
                   room: Optional[str] = None, skip_sid: Optional[str] = None,
                   namespace: Optional[str] = None, callback: Any = None,
                   ignore_queue: bool = False) -> None:
        ...

    async def enter_room(self, sid: str, room: str, namespace: Optional[str] = None) -> None:
        ...

    def rooms(self, sid: str, namespace: Optional[str] = None) -> List[str]:
        ...


@runtime_checkable
class IdentityVerifier(Protocol):
    """연결 시 제시된 토큰을 검증하고 사용자 ID를 반환하는 인터페이스"""

    async def verify(self, token: str) -> str:
        """
        토큰을 검증합니다.

        Args:
            token: Bearer 토큰 문자열

        Returns:
            안정적인 사용자 ID

        Raises:
            IdentityVerificationError: 토큰이 유효하지 않은 경우
        """
        ...


@runtime_checkable
class MessageStore(Protocol):
    """메시지 영속화 인터페이스"""

    async def save_message(self, sender_id: str, content: str,
                           receiver_id: Optional[str] = None,
                           group_id: Optional[str] = None) -> Dict[str, Any]:
        """
        메시지를 저장하고 클라이언트에 전달할 직렬화된 메시지를 반환합니다.

        반환되는 딕셔너리에는 최소한 "id", "sender", "content" 가 포함됩니다.
        """
        ...


@runtime_checkable
class GroupDirectory(Protocol):
    """그룹 구성원 조회 인터페이스"""

    async def get_member_ids(self, group_id: str) -> Optional[Set[str]]:
        """그룹 구성원 ID 집합을 반환합니다. 그룹이 없으면 None."""
        ...
