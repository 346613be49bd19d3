"""메인 애플리케이션"""
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import Settings, get_settings
from .core.error_handlers import register_exception_handlers
from .core.logging_utils import configure_logging, get_logger
from .auth.service import JWTIdentityVerifier
from .message.repository import MessageRepository
from .group.repository import GroupRepository
from .realtime import SocketManager, create_socket_manager
from .realtime.router import router as socket_router
from .database import init_db, close_db

logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None,
               socket_manager: Optional[SocketManager] = None,
               init_database: bool = True) -> FastAPI:
    """
    FastAPI 애플리케이션을 생성합니다.

    Args:
        settings: 설정 (None 인 경우 get_settings())
        socket_manager: 미리 구성한 SocketManager (테스트용). None 이면 기본 협력자로 생성
        init_database: 시작 시 MongoDB 초기화 여부
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="소셜 플랫폼 실시간 알림 및 메시지 API",
        version=settings.VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json"
    )

    # CORS 설정
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(socket_router)

    # HTTP 요청과 소켓 핸드셰이크는 같은 설정의 검증기를 사용한다
    verifier = JWTIdentityVerifier(settings)
    app.state.verifier = verifier

    if socket_manager is None:
        socket_manager = create_socket_manager(
            verifier=verifier,
            message_store=MessageRepository(),
            group_directory=GroupRepository(),
            settings=settings,
        )
    app.state.socket_manager = socket_manager

    if init_database:
        @app.on_event("startup")
        async def startup_event():
            """애플리케이션 시작 시 실행되는 이벤트"""
            await init_db(settings)
            logger.info(f"Socket.IO 경로: {settings.SOCKET_PATH}")

        @app.on_event("shutdown")
        async def shutdown_event():
            close_db()

    @app.get("/")
    async def root():
        """API 루트 엔드포인트"""
        return {
            "message": f"Welcome to {settings.PROJECT_NAME} API",
            "version": settings.VERSION,
            "docs_url": "/docs",
            "socket_path": settings.SOCKET_PATH
        }

    return app


def create_asgi_app(settings: Optional[Settings] = None):
    """Socket.IO 가 FastAPI 를 감싸는 최종 ASGI 앱을 생성합니다."""
    settings = settings or get_settings()
    configure_logging(
        level=settings.LOG_LEVEL,
        fmt=settings.LOG_FORMAT,
        timezone=settings.TIMEZONE,
        engineio_logger=settings.WS_ENGINEIO_LOGGER,
    )
    app = create_app(settings)
    return app.state.socket_manager.create_asgi_app(other_asgi_app=app)
