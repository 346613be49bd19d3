from fastapi import Depends, Request
from typing import Annotated

from ..auth.service import get_current_user_id
from ..realtime.manager import SocketManager
from .exceptions import SocialHubException


def get_socket_manager(request: Request) -> SocketManager:
    """
    SocketManager 인스턴스를 반환합니다.
    애플리케이션 생성 시 app.state 에 보관한 인스턴스를 사용합니다.
    """
    manager = getattr(request.app.state, "socket_manager", None)
    if manager is None:
        raise SocialHubException(
            status_code=503,
            detail="실시간 서버가 초기화되지 않았습니다.",
            error_code="SOCKET_NOT_READY"
        )
    return manager


# 의존성 타입 별칭
SocketManagerDep = Annotated[SocketManager, Depends(get_socket_manager)]
CurrentUserIdDep = Annotated[str, Depends(get_current_user_id)]
