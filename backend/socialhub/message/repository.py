"""
메시지 관련 데이터 접근 레이어

실시간 모듈의 MessageStore 인터페이스를 구현합니다.
"""
from typing import Any, Dict, Optional
import functools
import time

from .models import Message
from ..core.logging_utils import get_logger

logger = get_logger(__name__)


def log_db_operation(operation_name):
    """
    데이터베이스 작업을 로깅하는 데코레이터
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs):
            start_time = time.perf_counter()
            try:
                result = await func(self, *args, **kwargs)
                elapsed = time.perf_counter() - start_time
                logger.debug(f"{operation_name} 완료: 소요 시간 {elapsed:.4f}초")
                return result
            except Exception as e:
                elapsed = time.perf_counter() - start_time
                logger.error(f"{operation_name} 실패: {str(e)} (소요 시간 {elapsed:.4f}초)")
                raise
        return wrapper
    return decorator


class MessageRepository:
    """메시지 데이터 접근 레이어 클래스"""

    @log_db_operation("메시지 저장")
    async def save_message(self, sender_id: str, content: str,
                           receiver_id: Optional[str] = None,
                           group_id: Optional[str] = None) -> Dict[str, Any]:
        """
        메시지를 저장하고 클라이언트 전달용 데이터를 반환합니다.

        Args:
            sender_id: 발신자 ID
            content: 메시지 내용
            receiver_id: 수신자 ID (개인 메시지)
            group_id: 그룹 ID (그룹 메시지)

        Returns:
            직렬화된 메시지
        """
        message = Message(
            sender=sender_id,
            receiver=receiver_id,
            content=content,
            is_group_message=group_id is not None,
            group_id=group_id,
        )
        await message.insert()
        return message.to_event_payload()

