import asyncio
import pytest
from pymongo.errors import PyMongoError

from db.mongodb import make_pair_key
from db.schemas.files_schema import FileReference
from models.enums import MessageType
from models.message_model import SendMessageRequest
from services.exceptions import ValidationError, NotFoundError, AuthorizationError, PersistenceError
from tests.conftest import text, ALICE, BOB, CAROL, UNKNOWN


@pytest.mark.asyncio
async def test_send_to_offline_receiver_stays_sent(coordinator, conversation_repo, connections):
    message, conversation = await coordinator.send_message(ALICE, text(BOB))
    await connections.drain()

    assert message.status == "sent"
    assert conversation.id == make_pair_key(ALICE, BOB)
    assert conversation.get_unread_for(BOB) == 1
    assert conversation.last_message_id == message.id


@pytest.mark.asyncio
async def test_send_to_online_receiver_delivers_and_pushes(coordinator, connect, connections):
    bob_socket = connect(BOB)

    message, conversation = await coordinator.send_message(ALICE, text(BOB, "hi bob"))
    await connections.drain()

    assert message.status == "delivered"
    pushed = bob_socket.events("newMessage")
    assert len(pushed) == 1
    assert pushed[0]["message"]["id"] == message.id
    assert pushed[0]["message"]["status"] == "delivered"
    assert pushed[0]["conversation"] == {
        "id": conversation.id,
        "participants": conversation.participants,
        "unreadCount": 1,
    }


@pytest.mark.asyncio
async def test_concurrent_sends_share_one_conversation(coordinator, conversation_repo, db):
    await asyncio.gather(
        coordinator.send_message(ALICE, text(BOB, "hi bob")),
        coordinator.send_message(BOB, text(ALICE, "hi alice")),
    )

    assert await db.conversations.count_documents({}) == 1
    conversation = await conversation_repo.get_for_pair(ALICE, BOB)
    assert conversation.get_unread_for(ALICE) == 1
    assert conversation.get_unread_for(BOB) == 1


@pytest.mark.asyncio
async def test_send_validation_happens_before_any_write(coordinator, db):
    with pytest.raises(ValidationError):
        await coordinator.send_message(ALICE, text(ALICE))
    with pytest.raises(ValidationError):
        await coordinator.send_message(ALICE, text(BOB, "   "))
    with pytest.raises(ValidationError):
        await coordinator.send_message(ALICE, SendMessageRequest(receiver_id=BOB, message_type=MessageType.VOICE))
    with pytest.raises(NotFoundError):
        await coordinator.send_message(ALICE, text(UNKNOWN))

    assert await db.messages.count_documents({}) == 0
    assert await db.conversations.count_documents({}) == 0


@pytest.mark.asyncio
async def test_send_with_attachment(coordinator):
    attachment = FileReference(
        url="http://localhost:9000/chat-test/messages/voice/a.ogg",
        name="a.ogg",
        size=1024,
        mime_type="audio/ogg",
        object_name="messages/voice/a.ogg",
    )
    request = SendMessageRequest(receiver_id=BOB, message_type=MessageType.VOICE, duration=4.5)

    message, _ = await coordinator.send_message(ALICE, request, attachment)

    assert message.content is None
    assert message.file.name == "a.ogg"
    assert message.duration == 4.5


@pytest.mark.asyncio
async def test_failed_conversation_update_rolls_back_message(coordinator, conversation_repo, db, monkeypatch):
    async def broken(*args, **kwargs):
        raise PyMongoError("write failed")

    monkeypatch.setattr(conversation_repo, "record_message", broken)

    with pytest.raises(PersistenceError):
        await coordinator.send_message(ALICE, text(BOB))

    assert await db.messages.count_documents({}) == 0


@pytest.mark.asyncio
async def test_reply_to_outside_conversation_is_dropped(coordinator):
    original, _ = await coordinator.send_message(ALICE, text(BOB, "question"))
    elsewhere, _ = await coordinator.send_message(ALICE, text(CAROL, "other"))

    reply, _ = await coordinator.send_message(BOB, text(ALICE, "answer", reply_to=original.id))
    stray, _ = await coordinator.send_message(BOB, text(ALICE, "stray", reply_to=elsewhere.id))

    assert reply.reply_to == original.id
    assert stray.reply_to is None


@pytest.mark.asyncio
async def test_catch_up_delivers_pending_and_notifies_sender(coordinator, connect, connections, message_repo):
    await coordinator.send_message(ALICE, text(BOB, "one"))
    await coordinator.send_message(ALICE, text(BOB, "two"))
    alice_socket = connect(ALICE)

    delivered = await coordinator.catch_up(BOB, ALICE)
    await connections.drain()

    assert delivered == 2
    assert alice_socket.events("messagesDelivered") == [
        {"conversationId": make_pair_key(ALICE, BOB), "deliveredTo": BOB}
    ]
    assert {m.status for m in await message_repo.list_conversation(ALICE, BOB)} == {"delivered"}

    # Nothing pending, nothing pushed
    assert await coordinator.catch_up(BOB, ALICE) == 0
    await connections.drain()
    assert len(alice_socket.events("messagesDelivered")) == 1


@pytest.mark.asyncio
async def test_mark_seen_resets_unread_and_notifies_sender(coordinator, connect, connections, conversation_repo):
    await coordinator.send_message(ALICE, text(BOB, "one"))
    await coordinator.send_message(ALICE, text(BOB, "two"))
    await coordinator.send_message(BOB, text(ALICE, "reply"))
    alice_socket = connect(ALICE)

    result = await coordinator.mark_seen(BOB, ALICE)
    await connections.drain()

    assert result.modified_count == 2
    assert result.conversation_id == make_pair_key(ALICE, BOB)
    conversation = await conversation_repo.get_for_pair(ALICE, BOB)
    assert conversation.get_unread_for(BOB) == 0
    # The other direction is untouched
    assert conversation.get_unread_for(ALICE) == 1

    seen = alice_socket.events("messagesSeen")
    assert len(seen) == 1
    assert seen[0]["seenBy"] == BOB
    assert seen[0]["conversationId"] == make_pair_key(ALICE, BOB)
    assert "seenAt" in seen[0]


@pytest.mark.asyncio
async def test_mark_seen_is_idempotent(coordinator):
    await coordinator.send_message(ALICE, text(BOB))

    assert (await coordinator.mark_seen(BOB, ALICE)).modified_count == 1
    assert (await coordinator.mark_seen(BOB, ALICE)).modified_count == 0


@pytest.mark.asyncio
async def test_delete_message_rules(coordinator, connect, connections, message_repo):
    message, _ = await coordinator.send_message(ALICE, text(BOB, "regret"))
    bob_socket = connect(BOB)

    with pytest.raises(AuthorizationError):
        await coordinator.delete_message(BOB, message.id)
    with pytest.raises(NotFoundError):
        await coordinator.delete_message(ALICE, "64b0000000000000000000aa")

    deleted = await coordinator.delete_message(ALICE, message.id)
    await connections.drain()

    assert deleted.is_deleted is True
    assert bob_socket.events("messageDeleted") == [{"messageId": message.id, "senderId": ALICE}]

    # Deleting again is a no-op
    again = await coordinator.delete_message(ALICE, message.id)
    await connections.drain()
    assert again.is_deleted is True
    assert len(bob_socket.events("messageDeleted")) == 1


@pytest.mark.asyncio
async def test_get_messages_is_oldest_first_and_counts_as_delivery(coordinator, connect, connections):
    for content in ("one", "two", "three"):
        await coordinator.send_message(ALICE, text(BOB, content))
    alice_socket = connect(ALICE)

    page = await coordinator.get_messages(BOB, ALICE, page=1, limit=2)
    await connections.drain()

    assert [m.content for m in page.messages] == ["two", "three"]
    assert page.pagination.has_more is True
    assert page.conversation.id == make_pair_key(ALICE, BOB)
    assert page.conversation.unread_count == 3
    assert all(m.status == "delivered" for m in page.messages)
    assert len(alice_socket.events("messagesDelivered")) == 1


@pytest.mark.asyncio
async def test_get_messages_rejects_self_and_unknown(coordinator):
    with pytest.raises(ValidationError):
        await coordinator.get_messages(ALICE, ALICE)
    with pytest.raises(NotFoundError):
        await coordinator.get_messages(ALICE, UNKNOWN)


@pytest.mark.asyncio
async def test_reply_accepts_request(coordinator, message_service):
    await coordinator.send_message(ALICE, text(BOB, "hi stranger"))

    bob_view = await message_service.get_user_conversations(BOB)
    assert bob_view.chats == []
    assert [item.user.id for item in bob_view.requests] == [ALICE]

    await coordinator.send_message(BOB, text(ALICE, "hi back"))

    bob_view = await message_service.get_user_conversations(BOB)
    assert [item.user.name for item in bob_view.chats] == ["Alice"]
    assert bob_view.requests == []


@pytest.mark.asyncio
async def test_n_sends_to_online_receiver(coordinator, connect, connections, conversation_repo):
    bob_socket = connect(BOB)

    for i in range(5):
        await coordinator.send_message(ALICE, text(BOB, f"message {i}"))
    await connections.drain()

    assert len(bob_socket.events("newMessage")) == 5
    assert (await conversation_repo.get_for_pair(ALICE, BOB)).get_unread_for(BOB) == 5

    await coordinator.mark_seen(BOB, ALICE)
    assert (await conversation_repo.get_for_pair(ALICE, BOB)).get_unread_for(BOB) == 0


@pytest.mark.asyncio
async def test_offline_send_then_join_then_seen(coordinator, connect, connections, message_repo, conversation_repo):
    alice_socket = connect(ALICE)

    message, conversation = await coordinator.send_message(ALICE, text(BOB, "hello"))
    await connections.drain()
    assert message.status == "sent"
    assert conversation.get_unread_for(BOB) == 1
    assert alice_socket.events("messagesDelivered") == []

    connect(BOB)
    await coordinator.catch_up(BOB, ALICE)
    await connections.drain()
    assert (await message_repo.get(message.id)).status == "delivered"
    assert len(alice_socket.events("messagesDelivered")) == 1

    await coordinator.mark_seen(BOB, ALICE)
    await connections.drain()
    assert (await message_repo.get(message.id)).status == "seen"
    assert (await conversation_repo.get_for_pair(ALICE, BOB)).get_unread_for(BOB) == 0
    assert len(alice_socket.events("messagesSeen")) == 1


@pytest.mark.asyncio
async def test_deleted_messages_leave_status_alone(coordinator):
    message, _ = await coordinator.send_message(ALICE, text(BOB, "gone"))
    await coordinator.delete_message(ALICE, message.id)

    assert await coordinator.catch_up(BOB, ALICE) == 0
    assert (await coordinator.mark_seen(BOB, ALICE)).modified_count == 0
