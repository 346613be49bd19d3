import pytest
from fastapi.testclient import TestClient

from ...auth.service import JWTIdentityVerifier, create_access_token
from ...core.config import Settings
from ...core.exceptions import IdentityVerificationError
from ...main import create_app


def test_root(test_client):
    response = test_client.get("/")

    assert response.status_code == 200
    assert response.json()["socket_path"] == "/socket.io"


def test_socket_status_requires_token(test_client):
    """토큰 없이 상태 조회 시 401"""
    response = test_client.get("/socket/status")

    assert response.status_code == 401
    assert response.json()["error_code"] == "AUTHENTICATION_ERROR"


def test_socket_status_rejects_invalid_token(test_client):
    response = test_client.get("/socket/status", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401


def test_socket_status_accepts_token_signed_with_app_settings(test_client, settings):
    """앱에 전달한 설정의 SECRET_KEY 로 서명한 토큰은 HTTP 에서도 인증됨"""
    token = create_access_token("alice", settings)

    response = test_client.get("/socket/status", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json()["success"] is True


def test_socket_status_rejects_token_signed_with_other_secret(test_client):
    """다른 SECRET_KEY 로 서명한 토큰은 거부됨"""
    token = create_access_token("alice", Settings(SECRET_KEY="not-the-app-secret"))

    response = test_client.get("/socket/status", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


def test_http_and_handshake_share_verifier(settings):
    """기본 구성에서는 HTTP 인증과 소켓 핸드셰이크가 같은 검증기를 사용"""
    app = create_app(settings=settings, init_database=False)

    assert app.state.socket_manager.lifecycle.verifier is app.state.verifier
    assert app.state.verifier.settings is settings


@pytest.mark.asyncio
async def test_socket_status(test_client, connect, auth_headers):
    """소켓 상태 조회 API 테스트"""
    await connect("c1", "token-alice")
    await connect("c2", "token-bob")

    response = test_client.get("/socket/status", headers=auth_headers("alice"))

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["stats"]["connections"] == 2
    assert data["stats"]["connected_users"] == 2
    assert data["stats"]["current_user_online"] is True


@pytest.mark.asyncio
async def test_presence(test_client, connect, socket_manager, auth_headers):
    """사용자 접속 여부 조회 API 테스트"""
    await connect("c2", "token-bob")

    response = test_client.get("/socket/presence/bob", headers=auth_headers("alice"))
    assert response.json() == {"userId": "bob", "online": True}

    socket_manager.lifecycle.disconnect("c2")

    response = test_client.get("/socket/presence/bob", headers=auth_headers("alice"))
    assert response.json() == {"userId": "bob", "online": False}


@pytest.mark.asyncio
async def test_jwt_verifier_reads_user_claim():
    settings = Settings(SECRET_KEY="jwt-test-secret")
    verifier = JWTIdentityVerifier(settings)

    assert await verifier.verify(create_access_token("alice", settings)) == "alice"
    assert await verifier.verify(
        create_access_token("ignored", settings, extra_claims={"userId": None, "sub": "bob"})
    ) == "bob"


@pytest.mark.asyncio
async def test_jwt_verifier_rejects_bad_tokens():
    settings = Settings(SECRET_KEY="jwt-test-secret")
    verifier = JWTIdentityVerifier(settings)
    foreign = create_access_token("alice", Settings(SECRET_KEY="other-secret"))

    for token in ("", "garbage", foreign):
        with pytest.raises(IdentityVerificationError):
            await verifier.verify(token)


def test_unknown_route_returns_error_code(test_client):
    response = test_client.get("/socket/unknown")

    assert response.status_code == 404
    assert response.json()["error_code"] == "HTTP_ERROR"


def test_status_without_socket_manager(settings, auth_headers):
    """소켓 서버가 준비되지 않은 경우 503"""
    app = create_app(settings=settings, init_database=False)
    app.state.socket_manager = None

    with TestClient(app) as client:
        response = client.get("/socket/status", headers=auth_headers("alice"))

    assert response.status_code == 503
    assert response.json() == {"detail": "실시간 서버가 초기화되지 않았습니다.", "error_code": "SOCKET_NOT_READY"}
