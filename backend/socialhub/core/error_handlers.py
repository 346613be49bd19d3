"""
HTTP 예외 처리기

HTTP 라우터(/socket/status, /socket/presence)에서 발생하는 예외를
{"detail", "error_code"} 형태의 JSON 응답으로 변환합니다.
소켓 이벤트 오류는 여기서 처리하지 않고 error 이벤트로 전달됩니다.
"""
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from .exceptions import SocialHubException
from .logging_utils import get_logger

logger = get_logger(__name__)


def _error_response(status_code: int, detail: Any, error_code: Optional[str], **extra: Any) -> JSONResponse:
    content = {"detail": detail, "error_code": error_code}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


async def socialhub_exception_handler(request: Request, exc: SocialHubException):
    """인증 실패(401), 소켓 서버 미초기화(503) 등 SocialHub 예외"""
    return _error_response(exc.status_code, exc.detail, exc.error_code)


async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [{"loc": error["loc"], "msg": error["msg"]} for error in exc.errors()]
    return _error_response(422, "입력값 검증 오류가 발생했습니다.", "REQUEST_VALIDATION_ERROR", errors=errors)


async def http_exception_handler(request: Request, exc: HTTPException):
    """없는 경로(404), 허용되지 않은 메서드(405) 등 프레임워크 예외"""
    return _error_response(exc.status_code, exc.detail, "HTTP_ERROR")


async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"처리되지 않은 예외 - 경로: {request.url.path}, 오류: {str(exc)}", exc_info=exc)
    return _error_response(500, "내부 서버 오류가 발생했습니다.", "INTERNAL_SERVER_ERROR")


def register_exception_handlers(app: FastAPI) -> None:
    """예외 처리기를 애플리케이션에 등록합니다."""
    app.add_exception_handler(SocialHubException, socialhub_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
