"""
실시간 모듈 관련 HTTP 엔드포인트 라우터

소켓 서버 상태와 사용자 접속 여부(presence)를 조회하는 엔드포인트를 제공합니다.
"""
from fastapi import APIRouter

from ..core.dependencies import SocketManagerDep, CurrentUserIdDep
from ..core.logging_utils import get_logger

# 로거 설정
logger = get_logger(__name__)

# 라우터 생성
router = APIRouter(prefix="/socket", tags=["socket"])


@router.get("/status")
async def get_socket_status(manager: SocketManagerDep, current_user_id: CurrentUserIdDep):
    """
    소켓 서버 상태 API

    현재 연결 수와 접속 중인 사용자 수를 제공합니다.

    Returns:
        소켓 서버 상태 정보
    """
    stats = manager.get_stats()
    stats["current_user_online"] = manager.is_online(current_user_id)
    logger.debug(f"소켓 상태 조회 - 요청자: {current_user_id}")
    return {
        "success": True,
        "stats": stats
    }


@router.get("/presence/{user_id}")
async def get_presence(user_id: str, manager: SocketManagerDep, current_user_id: CurrentUserIdDep):
    """사용자 접속 여부 조회 API"""
    return {
        "userId": user_id,
        "online": manager.is_online(user_id)
    }
