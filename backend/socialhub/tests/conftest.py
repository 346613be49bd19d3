import itertools
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient

from ..core.config import Settings
from ..core.exceptions import IdentityVerificationError
from ..auth.service import create_access_token
from ..realtime.manager import SocketManager
from ..realtime.registry import ConnectionRegistry
from ..realtime.event_router import EventRouter
from ..main import create_app


class FakeTransport:
    """socketio.AsyncServer 대신 사용하는 기록용 전송 계층"""

    def __init__(self):
        self.emitted = []  # (event, data, to, room, skip_sid)
        self._rooms = {}  # sid -> 참가한 룸 집합
        self.fail_sids = set()

    async def emit(self, event, data=None, to=None, room=None, skip_sid=None, namespace=None):
        target = to or room
        if target in self.fail_sids:
            raise ConnectionError(f"전송 실패: {target}")
        self.emitted.append((event, data, to, room, skip_sid))

    async def enter_room(self, sid, room, namespace=None):
        self._rooms.setdefault(sid, set()).add(room)

    def rooms(self, sid, namespace=None):
        return [sid] + sorted(self._rooms.get(sid, set()))

    def members(self, room):
        return {sid for sid, rooms in self._rooms.items() if room in rooms}

    def received(self, sid, event=None):
        """sid 가 실제로 받게 되는 (event, data) 목록"""
        result = []
        for name, data, to, room, skip_sid in self.emitted:
            if event is not None and name != event:
                continue
            if to == sid:
                result.append((name, data))
            elif room is not None and sid != skip_sid and (room == sid or sid in self.members(room)):
                result.append((name, data))
        return result


class StaticIdentityVerifier:
    """토큰 -> 사용자 ID 고정 매핑 검증기"""

    def __init__(self, tokens):
        self.tokens = dict(tokens)

    async def verify(self, token):
        user_id = self.tokens.get(token)
        if user_id is None:
            raise IdentityVerificationError("유효하지 않은 토큰입니다.")
        return user_id


class InMemoryMessageStore:
    """메모리 기반 메시지 저장소"""

    def __init__(self):
        self.saved = []
        self._ids = itertools.count(1)

    async def save_message(self, sender_id, content, receiver_id=None, group_id=None):
        message = {
            "id": f"msg-{next(self._ids)}",
            "sender": sender_id,
            "receiver": receiver_id,
            "content": content,
            "isGroupMessage": group_id is not None,
            "groupId": group_id,
            "createdAt": datetime.now(ZoneInfo("UTC")).isoformat(),
        }
        self.saved.append(message)
        return message


class InMemoryGroupDirectory:
    """메모리 기반 그룹 구성원 조회"""

    def __init__(self, groups=None):
        self.groups = {group_id: set(members) for group_id, members in (groups or {}).items()}

    async def get_member_ids(self, group_id):
        members = self.groups.get(group_id)
        return set(members) if members is not None else None


TOKENS = {
    "token-alice": "alice",
    "token-bob": "bob",
    "token-carol": "carol",
}


@pytest.fixture
def settings():
    """테스트용 설정"""
    return Settings(SECRET_KEY="test-secret", DEBUG=True)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def verifier():
    return StaticIdentityVerifier(TOKENS)


@pytest.fixture
def message_store():
    return InMemoryMessageStore()


@pytest.fixture
def group_directory():
    return InMemoryGroupDirectory({"group-1": {"alice", "bob", "carol"}})


@pytest.fixture
def event_router(registry, transport):
    """테스트용 이벤트 라우터"""
    return EventRouter(registry, transport)


@pytest.fixture
def socket_manager(settings, transport, registry, verifier, message_store, group_directory):
    """가짜 전송 계층을 사용하는 SocketManager"""
    return SocketManager(
        verifier=verifier,
        message_store=message_store,
        group_directory=group_directory,
        settings=settings,
        transport=transport,
        registry=registry,
    )


@pytest.fixture
def connect(socket_manager):
    """토큰으로 연결을 수립하는 헬퍼"""
    async def _connect(sid, token):
        return await socket_manager.lifecycle.connect(sid, {}, {"token": token})
    return _connect


@pytest.fixture
def test_client(settings, socket_manager):
    """테스트용 FastAPI 클라이언트 (DB 초기화 없음)"""
    app = create_app(settings=settings, socket_manager=socket_manager, init_database=False)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def auth_headers(settings):
    """앱과 같은 설정으로 서명한 Bearer 헤더 생성 헬퍼"""
    def _headers(user_id):
        return {"Authorization": f"Bearer {create_access_token(user_id, settings)}"}
    return _headers
