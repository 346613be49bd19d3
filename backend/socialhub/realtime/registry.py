"""
연결 레지스트리

현재 접속 중인 사용자와 연결(sid) 사이의 매핑을 관리합니다.
"지금 누구에게 도달할 수 있는가"에 대한 유일한 기준 데이터이며,
연결/해제 콜백과 라우터가 동시에 접근하므로 모든 접근은 하나의 락으로 보호됩니다.
"""
import threading
from typing import Any, Dict, List, Optional

from .models import Connection
from ..core.logging_utils import get_logger

logger = get_logger(__name__)


class ConnectionRegistry:
    """사용자 ID <-> 연결 ID 매핑 레지스트리"""

    def __init__(self):
        self.logger = logger

        self._connections: Dict[str, Connection] = {}  # sid -> 연결 정보
        self._user_index: Dict[str, str] = {}  # 사용자 ID -> sid (사용자당 하나, 마지막 연결 우선)

        # 이벤트 루프 콜백과 스레드풀(동기 핸들러) 양쪽에서 접근하므로 threading.Lock 사용
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # 사용자 매핑
    # ------------------------------------------------------------------

    def register(self, user_id: str, sid: str) -> Optional[str]:
        """
        사용자의 연결을 등록합니다.

        같은 사용자의 이전 연결이 있으면 새 연결로 교체됩니다.

        Args:
            user_id: 사용자 ID
            sid: 연결 ID

        Returns:
            교체된 이전 연결 ID (없으면 None)
        """
        with self._lock:
            previous = self._user_index.get(user_id)
            self._user_index[user_id] = sid

        if previous and previous != sid:
            self.logger.warning(f"기존 연결 교체 - 사용자: {user_id}, 이전 SID: {previous}, 새 SID: {sid}")
        else:
            self.logger.info(f"사용자 등록됨 - 사용자: {user_id}, SID: {sid}")
        return previous if previous != sid else None

    def unregister(self, user_id: Optional[str], sid: Optional[str] = None) -> bool:
        """
        사용자의 연결 매핑을 제거합니다. 없는 사용자는 무시합니다.

        sid 가 주어지면 매핑이 여전히 그 연결을 가리킬 때만 제거합니다.
        (교체된 이전 기기의 늦은 해제가 새 기기의 매핑을 지우지 않도록)

        Returns:
            실제로 제거되었는지 여부
        """
        if not user_id:
            return False

        with self._lock:
            current = self._user_index.get(user_id)
            if current is None:
                removed = False
            elif sid is not None and current != sid:
                removed = False
            else:
                del self._user_index[user_id]
                removed = True

        if removed:
            self.logger.info(f"사용자 등록 해제됨 - 사용자: {user_id}, SID: {current}")
        else:
            self.logger.debug(f"등록 해제할 매핑 없음 - 사용자: {user_id}, SID: {sid}, 현재: {current}")
        return removed

    def resolve(self, user_id: str) -> Optional[str]:
        """사용자의 현재 연결 ID를 조회합니다. 접속 중이 아니면 None."""
        with self._lock:
            return self._user_index.get(user_id)

    def is_online(self, user_id: str) -> bool:
        """사용자가 현재 접속 중인지 확인합니다."""
        return self.resolve(user_id) is not None

    def online_users(self) -> List[str]:
        """현재 접속 중인 사용자 ID 목록"""
        with self._lock:
            return list(self._user_index.keys())

    # ------------------------------------------------------------------
    # 연결 테이블
    # ------------------------------------------------------------------

    def attach(self, connection: Connection) -> Connection:
        """
        연결 정보를 추가합니다.

        같은 sid 의 연결이 이미 있으면 (연결 콜백 재전달) 기존 객체를 그대로 반환합니다.
        """
        with self._lock:
            existing = self._connections.get(connection.sid)
            if existing is not None:
                return existing
            self._connections[connection.sid] = connection
            return connection

    def detach(self, sid: str) -> Optional[Connection]:
        """연결 정보를 제거합니다."""
        with self._lock:
            return self._connections.pop(sid, None)

    def get_connection(self, sid: str) -> Optional[Connection]:
        """연결 정보를 조회합니다."""
        with self._lock:
            return self._connections.get(sid)

    def get_stats(self) -> Dict[str, Any]:
        """연결 통계 정보를 조회합니다."""
        with self._lock:
            active = sum(1 for conn in self._connections.values() if conn.is_active)
            return {
                "connections": len(self._connections),
                "active_connections": active,
                "connected_users": len(self._user_index),
            }
