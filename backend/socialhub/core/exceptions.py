from fastapi import HTTPException, status
from typing import Optional, Any, Dict
import logging

logger = logging.getLogger(__name__)


class SocialHubException(HTTPException):
    """기본 SocialHub 예외 클래스 - 에러 코드와 상세 메시지를 포함"""
    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail)
        self.error_code = error_code
        self.extra = extra or {}

        logger.error(
            f"SocialHubException: {error_code or 'NO_CODE'} - {detail}",
            extra={
                "status_code": status_code,
                "error_code": error_code,
                "extra": extra
            }
        )


class UnauthorizedException(SocialHubException):
    """인증되지 않은 요청에 대한 예외"""
    def __init__(self, detail: str = "인증이 필요합니다.", error_code: str = "AUTHENTICATION_ERROR"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail, error_code=error_code)


# 실시간(소켓) 경로 예외 - HTTP 응답으로 변환되지 않는다
class RealtimeError(Exception):
    """실시간 통신 계층의 기본 예외"""
    code = "REALTIME_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class IdentityVerificationError(RealtimeError):
    """토큰이 없거나 유효하지 않을 때 발생하는 예외"""
    code = "AUTHENTICATION_ERROR"


class InvalidEventPayload(RealtimeError):
    """클라이언트 이벤트 데이터 형식이 잘못된 경우 발생하는 예외"""
    code = "INVALID_PAYLOAD"


class ConnectionStateError(RealtimeError):
    """연결 상태 전이가 허용되지 않는 경우 발생하는 예외"""
    code = "INVALID_STATE"
