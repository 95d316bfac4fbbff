import asyncio
import pytest

from db.mongodb import make_pair_key
from db.schemas.messages_schema import MessageInDB
from tests.conftest import ALICE, BOB, CAROL


def test_pair_key_is_order_independent():
    assert make_pair_key(ALICE, BOB) == make_pair_key(BOB, ALICE)
    assert make_pair_key(ALICE, BOB) != make_pair_key(ALICE, CAROL)


@pytest.mark.asyncio
async def test_find_or_create_returns_one_aggregate_per_pair(conversation_repo, db):
    first, second = await asyncio.gather(
        conversation_repo.find_or_create(ALICE, BOB, initiator=ALICE),
        conversation_repo.find_or_create(BOB, ALICE, initiator=BOB),
    )

    assert first.id == second.id == make_pair_key(ALICE, BOB)
    assert await db.conversations.count_documents({}) == 1
    assert sorted(first.participants) == sorted([ALICE, BOB])


@pytest.mark.asyncio
async def test_new_conversation_is_a_request_for_the_receiver(conversation_repo):
    conversation = await conversation_repo.find_or_create(ALICE, BOB, initiator=ALICE)

    assert conversation.is_accepted_by(ALICE)
    assert not conversation.is_accepted_by(BOB)
    assert conversation.get_unread_for(ALICE) == 0
    assert conversation.get_unread_for(BOB) == 0


@pytest.mark.asyncio
async def test_record_message_bumps_receiver_counter(conversation_repo):
    conversation = await conversation_repo.find_or_create(ALICE, BOB, initiator=ALICE)

    for text in ("one", "two", "three"):
        message = MessageInDB(sender_id=ALICE, receiver_id=BOB, message_type="text", content=text)
        conversation = await conversation_repo.record_message(conversation.id, message)

    assert conversation.get_unread_for(BOB) == 3
    assert conversation.get_unread_for(ALICE) == 0
    assert conversation.last_message_id == message.id
    assert conversation.last_activity == message.created_at


@pytest.mark.asyncio
async def test_concurrent_increments_are_not_lost(conversation_repo):
    conversation = await conversation_repo.find_or_create(ALICE, BOB)

    await asyncio.gather(*(conversation_repo.increment_unread(conversation.id, BOB) for _ in range(10)))

    assert await conversation_repo.get_unread_for(conversation.id, BOB) == 10

    await conversation_repo.reset_unread(conversation.id, BOB)
    assert await conversation_repo.get_unread_for(conversation.id, BOB) == 0


@pytest.mark.asyncio
async def test_list_for_user_skips_empty_and_archived(conversation_repo):
    with_bob = await conversation_repo.find_or_create(ALICE, BOB, initiator=ALICE)
    await conversation_repo.find_or_create(ALICE, CAROL, initiator=ALICE)  # never messaged

    message = MessageInDB(sender_id=ALICE, receiver_id=BOB, message_type="text", content="hi")
    await conversation_repo.record_message(with_bob.id, message)

    listed = await conversation_repo.list_for_user(ALICE)
    assert [c.id for c in listed] == [with_bob.id]

    await conversation_repo.set_archived(with_bob.id, ALICE, True)
    assert await conversation_repo.list_for_user(ALICE) == []
    assert [c.id for c in await conversation_repo.list_for_user(ALICE, archived=True)] == [with_bob.id]
    # Archiving is per participant
    assert [c.id for c in await conversation_repo.list_for_user(BOB)] == [with_bob.id]


@pytest.mark.asyncio
async def test_accept_requires_participant(conversation_repo):
    conversation = await conversation_repo.find_or_create(ALICE, BOB, initiator=ALICE)

    assert await conversation_repo.accept(conversation.id, CAROL) is None

    accepted = await conversation_repo.accept(conversation.id, BOB)
    assert accepted.is_accepted_by(BOB)
