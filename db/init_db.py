from pymongo import ASCENDING, DESCENDING

async def init_db_indexes(db):
    """
    Initialize database with required indexes for messaging
    """
    # Chat history in both directions, newest first
    await db.messages.create_index([
        ("sender_id", ASCENDING),
        ("receiver_id", ASCENDING),
        ("created_at", DESCENDING),
        ("_id", DESCENDING),
    ])
    await db.messages.create_index([
        ("receiver_id", ASCENDING),
        ("sender_id", ASCENDING),
        ("created_at", DESCENDING),
        ("_id", DESCENDING),
    ])

    # Status updates and badge counts
    await db.messages.create_index([("receiver_id", ASCENDING), ("status", ASCENDING)])

    # Conversation list for a participant; the pair key is the _id so
    # uniqueness per pair comes from the primary key
    await db.conversations.create_index([("participants", ASCENDING), ("last_activity", DESCENDING)])
