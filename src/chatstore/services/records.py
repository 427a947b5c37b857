from __future__ import annotations

from typing import Any

from chatstore.storage.kv.store import KeyValueStore, StoreStats, WriteResult

# Group names and partition fields per record kind
CHAT_GROUP = "chat"
CHAT_PARTITION_FIELD = "userId"
USER_GROUP = "user"


class ChatRecords:
    """Chats live in group "chat", bucketed by their owner's userId."""

    def __init__(self, store: KeyValueStore):
        self._store = store

    async def get_chat_by_id(self, chat_id: str) -> dict[str, Any] | None:
        return await self._store.get(CHAT_GROUP, chat_id)

    async def get_chats_by_user_id(self, user_id: str) -> list[dict[str, Any]]:
        return await self._store.get_by_partition(CHAT_GROUP, user_id)

    async def delete_chat_by_id(self, chat_id: str) -> WriteResult:
        return await self._store.delete(CHAT_GROUP, chat_id, CHAT_PARTITION_FIELD)

    async def delete_chats_by_user_id(self, user_id: str) -> WriteResult:
        return await self._store.delete_by_partition(CHAT_GROUP, user_id)

    async def update_chat(self, chat_id: str, payload: dict[str, Any]) -> WriteResult:
        return await self._store.set(CHAT_GROUP, chat_id, payload, CHAT_PARTITION_FIELD)

    async def insert_chat(self, payload: dict[str, Any]) -> WriteResult:
        return await self._store.set(CHAT_GROUP, payload["id"], payload, CHAT_PARTITION_FIELD)


class UserRecords:
    """Users live in group "user", keyed by email, unpartitioned."""

    def __init__(self, store: KeyValueStore):
        self._store = store

    async def insert_user(self, payload: dict[str, Any]) -> WriteResult:
        return await self._store.set(USER_GROUP, payload["email"], payload)

    async def get_user_by_email(self, email: str) -> dict[str, Any] | None:
        return await self._store.get(USER_GROUP, email)


async def get_stats(store: KeyValueStore) -> StoreStats:
    return await store.stats()
