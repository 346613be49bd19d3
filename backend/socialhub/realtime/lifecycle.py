"""
연결 생명주기 관리

연결마다 connecting -> authenticating -> active -> disconnected 상태 머신을 진행합니다.

    - 핸드셰이크에서 토큰을 꺼내 검증하고, 실패하면 연결을 거부합니다 (재시도 없음).
    - 인증에 성공하면 사용자 ID를 연결에 바인딩하고 레지스트리에 등록합니다.
    - 비즈니스 이벤트 리스너는 연결당 한 번만 등록합니다. 전송 계층이 재연결 과정에서
      connect 콜백을 다시 전달해도 리스너가 중복되지 않습니다.
    - 연결 해제 시 레지스트리에서 즉시, 무조건 제거합니다.
    - 이벤트 처리 중 오류는 로그를 남기고 클라이언트에 error 이벤트로 알리며 연결은 유지합니다.
"""
import functools
import traceback
import urllib.parse
from typing import Any, Dict, Optional

from bson import ObjectId
from fastapi.encoders import jsonable_encoder
import socketio

from .interfaces import IdentityVerifier, RealtimeTransport
from .models import Connection, RealtimeEvent, SessionState, SocketError
from .registry import ConnectionRegistry
from .service import RealtimeService
from ..core.exceptions import IdentityVerificationError, RealtimeError
from ..core.logging_utils import get_logger, set_request_context, clear_request_context

logger = get_logger(__name__)


def extract_token(environ: Optional[Dict[str, Any]], auth: Optional[Any]) -> Optional[str]:
    """
    핸드셰이크 정보에서 Bearer 토큰을 추출합니다.

    우선순위: auth 파라미터의 token -> 쿼리 파라미터 token -> Authorization 헤더
    """
    if isinstance(auth, dict):
        token = auth.get("token")
        if isinstance(token, str) and token.strip():
            return _strip_bearer(token)

    environ = environ or {}
    query_params = dict(urllib.parse.parse_qsl(environ.get("QUERY_STRING", "")))
    token = query_params.get("token")
    if token:
        return _strip_bearer(token)

    header = environ.get("HTTP_AUTHORIZATION")
    if header and header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


def _strip_bearer(token: str) -> str:
    token = token.strip()
    if token.lower().startswith("bearer "):
        return token[7:].strip()
    return token


class SessionLifecycle:
    """연결 생명주기 관리 클래스"""

    def __init__(self, registry: ConnectionRegistry, verifier: IdentityVerifier,
                 service: RealtimeService, transport: RealtimeTransport, namespace: str = "/"):
        self.logger = logger
        self.registry = registry
        self.verifier = verifier
        self.service = service
        self.transport = transport
        self.namespace = namespace

    # ------------------------------------------------------------------
    # connect
    # ------------------------------------------------------------------

    async def connect(self, sid: str, environ: Optional[Dict[str, Any]] = None, auth: Optional[Any] = None) -> Connection:
        """
        Socket.IO 'connect' 이벤트의 실제 처리 로직.

        Args:
            sid: 소켓 ID
            environ: WSGI/ASGI 환경 변수
            auth: 클라이언트가 보낸 인증 정보

        Returns:
            활성화된 연결

        Raises:
            ConnectionRefusedError: 토큰이 없거나 유효하지 않은 경우 (핸드셰이크 거부)
        """
        connection = self.registry.attach(Connection(sid=sid))

        if connection.is_active:
            # 같은 물리 연결에 대한 connect 콜백 재전달
            self.logger.warning(f"이미 활성화된 연결의 connect 재전달 - SID: {sid}, 사용자: {connection.user_id}")
            # 더 최근에 연결한 다른 기기의 매핑은 되돌리지 않는다
            if self.registry.resolve(connection.user_id) is None:
                self.registry.register(connection.user_id, sid)
            self._attach_listeners(connection)
            return connection

        try:
            connection.transition(SessionState.AUTHENTICATING)
            token = extract_token(environ, auth)
            if not token:
                raise IdentityVerificationError("토큰이 제공되지 않았습니다.")

            user_id = await self.verifier.verify(token)
            connection.bind_user(user_id)
            connection.transition(SessionState.ACTIVE)
        except IdentityVerificationError as e:
            self._reject(connection)
            self.logger.warning(f"소켓 인증 실패 - SID: {sid}, 사유: {e.message}")
            raise socketio.exceptions.ConnectionRefusedError("Authentication error")
        except Exception as e:
            self._reject(connection)
            self.logger.error(f"소켓 인증 중 오류 발생 - SID: {sid}, 오류: {str(e)}")
            self.logger.error(traceback.format_exc())
            raise socketio.exceptions.ConnectionRefusedError("Authentication error")

        self.registry.register(user_id, sid)
        self._attach_listeners(connection)
        self.logger.info(f"소켓 연결 완료 - SID: {sid}, 사용자: {user_id}")
        return connection

    def _reject(self, connection: Connection) -> None:
        connection.transition(SessionState.DISCONNECTED)
        self.registry.detach(connection.sid)

    def _attach_listeners(self, connection: Connection) -> bool:
        """
        비즈니스 이벤트 리스너를 연결에 등록합니다.

        Returns:
            이번 호출에서 실제로 등록했는지 여부
        """
        if not connection.claim_listener_registration():
            self.logger.warning(f"이벤트가 이미 등록된 연결 - SID: {connection.sid}")
            return False

        for event_name, handler in self.service.event_handlers.items():
            connection.add_listener(event_name, functools.partial(handler, connection))
        self.logger.debug(f"이벤트 리스너 등록 완료 - SID: {connection.sid}, 이벤트 수: {len(connection.listeners)}")
        return True

    # ------------------------------------------------------------------
    # 이벤트 디스패치
    # ------------------------------------------------------------------

    async def dispatch(self, sid: str, event: str, *args: Any) -> Any:
        """
        연결에 등록된 리스너로 이벤트를 전달합니다.

        리스너 오류는 연결을 끊지 않습니다. 로그를 남기고 error 이벤트로 알린 뒤 실패 응답을 반환합니다.
        반환값은 클라이언트가 ack 콜백을 요청한 경우 그대로 전달됩니다.
        """
        connection = self.registry.get_connection(sid)
        if connection is None or not connection.is_active:
            self.logger.warning(f"활성 상태가 아닌 연결의 이벤트 무시 - SID: {sid}, 이벤트: {event}")
            return None

        listeners = connection.get_listeners(event)
        if not listeners:
            self.logger.warning(f"등록되지 않은 이벤트 - SID: {sid}, 이벤트: {event}")
            return None

        set_request_context(sid, connection.user_id)
        try:
            result = None
            for listener in listeners:
                try:
                    result = await listener(*args)
                except RealtimeError as e:
                    self.logger.warning(f"잘못된 이벤트 데이터 - 이벤트: {event}, 사유: {e.message}")
                    result = await self._report_error(sid, SocketError(code=e.code, message=e.message, details=e.details))
                except Exception as e:
                    self.logger.error(f"이벤트 처리 중 오류 발생 - 이벤트: {event}, 오류: {str(e)}")
                    self.logger.error(traceback.format_exc())
                    result = await self._report_error(sid, SocketError(
                        code="EVENT_HANDLER_ERROR",
                        message="이벤트 처리 중 오류가 발생했습니다.",
                        details={"event": event}
                    ))
            return jsonable_encoder(result, custom_encoder={ObjectId: str})
        finally:
            clear_request_context()

    async def _report_error(self, sid: str, error: SocketError) -> Dict[str, Any]:
        body = error.model_dump()
        try:
            await self.transport.emit(RealtimeEvent.ERROR.value, body, to=sid, namespace=self.namespace)
        except Exception as e:
            self.logger.error(f"오류 메시지 전송 중 추가 오류 발생 - SID: {sid}, 오류: {str(e)}")
        return {"success": False, "error": body}

    # ------------------------------------------------------------------
    # disconnect
    # ------------------------------------------------------------------

    def disconnect(self, sid: str) -> Optional[Connection]:
        """
        Socket.IO 'disconnect' 이벤트의 실제 처리 로직.

        await 없이 동기적으로 레지스트리에서 제거하므로 해제 직후의 라우팅은 이 연결을 찾지 못합니다.
        알 수 없는 sid 는 무시합니다.
        """
        connection = self.registry.detach(sid)
        if connection is None:
            self.logger.debug(f"연결 해제 시 연결 정보를 찾을 수 없음 - SID: {sid}")
            return None

        self.registry.unregister(connection.user_id, sid)
        connection.transition(SessionState.DISCONNECTED)
        self.logger.info(f"소켓 연결 해제 완료 - SID: {sid}, 사용자: {connection.user_id}")
        return connection
