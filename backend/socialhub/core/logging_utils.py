"""
로깅 유틸리티 모듈

애플리케이션 전체에서 일관된 로깅 형식과 컨텍스트를 제공하기 위한 유틸리티 함수들을 포함합니다.
소켓 이벤트 처리 중에는 연결 ID와 사용자 ID가 컨텍스트로 함께 기록됩니다.
"""

import logging
import sys
import inspect
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo
from contextvars import ContextVar

# 현재 요청(또는 소켓 이벤트)의 컨텍스트 정보를 저장하기 위한 ContextVar
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)


class LoggerAdapter(logging.LoggerAdapter):
    """
    로깅 어댑터 클래스

    표준화된 로그 포맷과 컨텍스트 정보를 제공합니다.
    """

    def process(self, msg, kwargs):
        """
        로그 메시지를 처리하고 컨텍스트 정보를 추가합니다.

        Args:
            msg: 원본 로그 메시지
            kwargs: 로깅 함수에 전달된 키워드 인자

        Returns:
            처리된 메시지와 키워드 인자
        """
        extra = dict(kwargs.get("extra") or {})

        if request_id := request_id_var.get():
            extra["request_id"] = request_id

        if user_id := user_id_var.get():
            extra["user_id"] = user_id

        # logging 모듈 내부 프레임을 건너뛰고 실제 호출자를 찾는다
        frame = inspect.currentframe()
        while frame is not None and frame.f_globals.get("__name__", "").startswith(("logging", __name__)):
            frame = frame.f_back
        function_name = frame.f_code.co_name if frame is not None else "unknown"

        extra["app_module"] = self.logger.name
        extra["function"] = function_name
        kwargs["extra"] = extra

        context = f" ({user_id_var.get()})" if user_id_var.get() else ""
        return f"[{self.logger.name}.{function_name}]{context} {msg}", kwargs


def get_logger(name: str) -> LoggerAdapter:
    """
    표준화된 로거 인스턴스를 반환합니다.

    Args:
        name: 로거 이름 (일반적으로 __name__)

    Returns:
        LoggerAdapter 인스턴스
    """
    return LoggerAdapter(logging.getLogger(name), {})


def set_request_context(request_id: str, user_id: Optional[str] = None) -> None:
    """
    현재 요청의 컨텍스트 정보를 설정합니다.

    Args:
        request_id: 요청 ID (소켓 이벤트의 경우 연결 ID)
        user_id: 사용자 ID (선택 사항)
    """
    request_id_var.set(request_id)
    if user_id:
        user_id_var.set(user_id)


def clear_request_context() -> None:
    """현재 요청의 컨텍스트 정보를 초기화합니다."""
    request_id_var.set(None)
    user_id_var.set(None)


class TimezoneFormatter(logging.Formatter):
    """지정된 시간대로 로그 시간을 출력하는 포맷터"""

    def __init__(self, fmt: Optional[str] = None, timezone: str = "UTC"):
        super().__init__(fmt)
        self.tz = ZoneInfo(timezone)

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, self.tz)
        if datefmt:
            return dt.strftime(datefmt)
        return dt.strftime("%Y-%m-%d %H:%M:%S %z")


def configure_logging(level: str = "INFO", fmt: Optional[str] = None,
                      timezone: str = "UTC", engineio_logger: bool = False) -> None:
    """
    루트 로거를 설정합니다.

    ping/pong 로그가 넘치지 않도록 socketio / engineio 로거는 기본적으로 WARNING 으로 둡니다.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    formatter = TimezoneFormatter(fmt, timezone=timezone)
    for handler in logging.root.handlers:
        handler.setFormatter(formatter)

    if not engineio_logger:
        logging.getLogger("socketio.server").setLevel(logging.WARNING)
        logging.getLogger("engineio.server").setLevel(logging.WARNING)
