import pytest

from ...realtime.models import DeletionScope


@pytest.mark.asyncio
async def test_room_broadcast_reaches_all_joined_connections(connect, socket_manager, transport):
    """룸 R 에 참가한 모든 연결(같은 사용자의 두 연결 포함)에 브로드캐스트 도달"""
    await connect("phone", "token-alice")
    await connect("laptop", "token-alice")
    await connect("c2", "token-bob")
    await connect("c3", "token-carol")

    for sid in ("phone", "laptop", "c2"):
        result = await socket_manager.lifecycle.dispatch(sid, "join-room", "room-R")
        assert result == {"success": True, "roomId": "room-R"}

    await socket_manager.broadcast_to_room("room-R", "new-comment", {"text": "hi"})

    for sid in ("phone", "laptop", "c2"):
        assert transport.received(sid, "new-comment") == [("new-comment", {"text": "hi"})]
    assert transport.received("c3", "new-comment") == []
    assert socket_manager.rooms.rooms_of("phone") == ["room-R"]


@pytest.mark.asyncio
async def test_join_room_accepts_object_payload(connect, socket_manager, transport):
    await connect("c1", "token-alice")

    await socket_manager.lifecycle.dispatch("c1", "join-room", {"roomId": "post-7"})

    assert transport.members("post-7") == {"c1"}


@pytest.mark.asyncio
async def test_join_room_without_id_is_rejected(connect, socket_manager, transport):
    connection = await connect("c1", "token-alice")

    result = await socket_manager.lifecycle.dispatch("c1", "join-room")

    assert result["error"]["code"] == "INVALID_PAYLOAD"
    assert connection.is_active


@pytest.mark.asyncio
async def test_send_direct_message_persists_then_routes(connect, socket_manager, transport, message_store):
    """메시지를 저장한 뒤 수신자에게 receive-message 와 new-notification 전달"""
    await connect("c1", "token-alice")
    await connect("c2", "token-bob")

    result = await socket_manager.lifecycle.dispatch(
        "c1", "send-message", {"senderId": "mallory", "receiverId": "bob", "content": "hello"}
    )

    saved = message_store.saved[0]
    assert saved["sender"] == "alice"
    assert saved["receiver"] == "bob"
    assert result["message"]["id"] == saved["id"]
    assert result["delivered"] == 1

    assert transport.received("c2", "receive-message") == [("receive-message", saved)]
    (_, notification), = transport.received("c2", "new-notification")
    assert notification["type"] == "message"
    assert notification["senderId"] == "alice"
    assert transport.received("c1", "receive-message") == []


@pytest.mark.asyncio
async def test_send_direct_message_to_offline_user_is_still_saved(connect, socket_manager, transport, message_store):
    await connect("c1", "token-alice")

    result = await socket_manager.lifecycle.dispatch("c1", "send-message", {"receiverId": "bob", "content": "hi"})

    assert result["success"] is True
    assert result["delivered"] == 0
    assert len(message_store.saved) == 1


@pytest.mark.asyncio
async def test_messages_from_one_sender_keep_order(connect, socket_manager, transport):
    """같은 발신자의 메시지는 저장 순서대로 수신자에게 전달"""
    await connect("c1", "token-alice")
    await connect("c2", "token-bob")

    for n in range(5):
        await socket_manager.lifecycle.dispatch("c1", "send-message", {"receiverId": "bob", "content": f"m{n}"})

    contents = [data["content"] for _, data in transport.received("c2", "receive-message")]
    assert contents == ["m0", "m1", "m2", "m3", "m4"]


@pytest.mark.asyncio
async def test_send_group_message(connect, socket_manager, transport, message_store):
    """그룹 메시지는 접속 중인 구성원에게 receive-message 와 그룹 알림으로 전달"""
    await connect("c1", "token-alice")
    await connect("c3", "token-carol")

    result = await socket_manager.lifecycle.dispatch("c1", "send-message", {"groupId": "group-1", "content": "hey"})

    saved = message_store.saved[0]
    assert saved["isGroupMessage"] is True
    assert saved["groupId"] == "group-1"
    assert result["delivered"] == 2

    for sid in ("c1", "c3"):
        assert transport.received(sid, "receive-message") == [("receive-message", saved)]
        (_, notification), = transport.received(sid, "new-notification")
        assert notification["type"] == "group-message"
        assert notification["groupId"] == "group-1"


@pytest.mark.asyncio
async def test_send_message_to_unknown_group(connect, socket_manager, transport, message_store):
    await connect("c1", "token-alice")

    result = await socket_manager.lifecycle.dispatch(
        "c1", "send-message", {"groupId": "missing", "isGroupMessage": True, "content": "hey"}
    )

    assert result["success"] is True
    assert result["delivered"] == 0
    assert len(message_store.saved) == 1
    assert transport.emitted == []


@pytest.mark.asyncio
async def test_signaling_is_relayed_verbatim_to_room_except_sender(connect, socket_manager, transport):
    """offer/answer/ice-candidate 는 발신자를 제외한 스트림 룸 구성원에게 그대로 전달"""
    await connect("host", "token-alice")
    await connect("viewer", "token-bob")
    await socket_manager.lifecycle.dispatch("host", "join-stream", "stream-1")
    await socket_manager.lifecycle.dispatch("viewer", "join-stream", "stream-1")

    offer = {"type": "offer", "sdp": "v=0..."}
    await socket_manager.lifecycle.dispatch("host", "offer", "stream-1", offer)
    await socket_manager.lifecycle.dispatch("viewer", "answer", "stream-1", {"type": "answer", "sdp": "v=0"})
    await socket_manager.lifecycle.dispatch("viewer", "ice-candidate", "stream-1", {"candidate": "c"})

    assert transport.received("viewer", "offer") == [("offer", offer)]
    assert transport.received("host", "offer") == []
    assert transport.received("host", "answer") == [("answer", {"type": "answer", "sdp": "v=0"})]
    assert transport.received("host", "ice-candidate") == [("ice-candidate", {"candidate": "c"})]
    assert transport.received("viewer", "ice-candidate") == []


@pytest.mark.parametrize("event", [
    "screen-share-offer",
    "screen-share-answer",
    "screen-share-ice-candidate",
    "start-screen-share",
    "stop-screen-share",
])
@pytest.mark.asyncio
async def test_screen_share_relay_adds_sender(connect, socket_manager, transport, event):
    await connect("host", "token-alice")
    await connect("viewer", "token-bob")
    await socket_manager.lifecycle.dispatch("host", "join-stream", {"streamId": "stream-1"})
    await socket_manager.lifecycle.dispatch("viewer", "join-stream", {"streamId": "stream-1"})

    await socket_manager.lifecycle.dispatch("host", event, {"streamId": "stream-1", "offer": {"sdp": "x"}})

    assert transport.received("viewer", event) == [(event, {"senderSocketId": "host", "offer": {"sdp": "x"}})]
    assert transport.received("host", event) == []


@pytest.mark.asyncio
async def test_screen_share_without_stream_id_is_rejected(connect, socket_manager, transport):
    connection = await connect("host", "token-alice")

    result = await socket_manager.lifecycle.dispatch("host", "start-screen-share", {"offer": {}})

    assert result["error"]["code"] == "INVALID_PAYLOAD"
    assert connection.is_active


@pytest.mark.asyncio
async def test_emit_message_echoes_to_sender(connect, socket_manager, transport):
    """HTTP 로 저장된 메시지는 발신자에게 에코 후 수신자에게 전달"""
    await connect("c1", "token-alice")
    await connect("c2", "token-bob")
    message = {"id": "msg-9", "content": "file", "filePath": "/uploads/a.png"}

    await socket_manager.emit_message(message, "alice", receiver_id="bob")

    assert transport.received("c1", "receive-message") == [("receive-message", message)]
    assert transport.received("c2", "receive-message") == [("receive-message", message)]
    assert len(transport.received("c2", "new-notification")) == 1


@pytest.mark.asyncio
async def test_emit_group_message_does_not_duplicate_sender(connect, socket_manager, transport):
    await connect("c1", "token-alice")
    await connect("c2", "token-bob")
    message = {"id": "msg-10", "content": "file"}

    await socket_manager.emit_message(message, "alice", group_id="group-1")

    assert transport.received("c1", "receive-message") == [("receive-message", message)]
    assert transport.received("c2", "receive-message") == [("receive-message", message)]


@pytest.mark.asyncio
async def test_notify_users_and_deletion(connect, socket_manager, transport):
    await connect("c1", "token-alice")
    await connect("c2", "token-bob")

    report = await socket_manager.notify_users(
        ["alice", "bob", "carol"],
        {"alice": {"id": "n1"}, "bob": {"id": "n2"}, "carol": {"id": "n3"}},
    )
    assert report.attempted == 2
    assert report.offline == 1
    assert transport.received("c1", "new-notification") == [("new-notification", {"id": "n1"})]

    await socket_manager.notify_deletion("msg-1", DeletionScope.for_group("group-1", ["alice", "bob", "carol"]))
    assert transport.received("c2", "message-deleted") == [("message-deleted", {"messageId": "msg-1"})]


@pytest.mark.asyncio
async def test_notify_group(connect, socket_manager, transport):
    await connect("c1", "token-alice")

    report = await socket_manager.notify_group("group-1", ["alice", "bob"], {"content": "x"})

    assert report.attempted == 1
    assert transport.received("c1") == [("receive-message", {"content": "x"})]
