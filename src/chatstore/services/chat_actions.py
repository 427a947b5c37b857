from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from typing import Any

from chatstore.storage.errors import NotFound, Unauthorized

from .records import ChatRecords

logger = logging.getLogger(__name__)


class ChatActions:
    """
    Caller-facing chat operations.

    The store does not authenticate; every ownership check happens here,
    against the caller identity supplied by the HTTP layer.
    """

    def __init__(self, chats: ChatRecords):
        self._chats = chats

    async def get_chats(self, user_id: str | None) -> list[dict[str, Any]]:
        if not user_id:
            return []
        try:
            return await self._chats.get_chats_by_user_id(user_id)
        except Exception:
            logger.exception("listing chats for %s failed", user_id)
            return []

    async def get_chat(self, chat_id: str, user_id: str | None) -> dict[str, Any] | None:
        chat = await self._chats.get_chat_by_id(chat_id)
        if not chat or (user_id and chat.get("userId") != user_id):
            return None
        return chat

    async def remove_chat(self, chat_id: str, user_id: str | None) -> None:
        if not user_id:
            raise Unauthorized("Unauthorized")
        chat = await self._chats.get_chat_by_id(chat_id)
        owner = chat.get("userId") if chat else None
        if owner != user_id:
            raise Unauthorized("Unauthorized")
        await self._chats.delete_chat_by_id(chat_id)

    async def clear_chats(self, user_id: str | None) -> int:
        if not user_id:
            raise Unauthorized("Unauthorized")
        result = await self._chats.delete_chats_by_user_id(user_id)
        return result.count

    async def get_shared_chat(self, chat_id: str) -> dict[str, Any] | None:
        chat = await self._chats.get_chat_by_id(chat_id)
        if not chat or not chat.get("sharePath"):
            return None
        return chat

    async def share_chat(self, chat_id: str, user_id: str | None) -> dict[str, Any]:
        if not user_id:
            raise Unauthorized("Unauthorized")
        chat = await self._chats.get_chat_by_id(chat_id)
        if not chat or chat.get("userId") != user_id:
            raise NotFound("Something went wrong")

        payload = {**chat, "sharePath": f"/share/{chat['id']}"}
        await self._chats.update_chat(chat_id, payload)
        return payload

    async def save_chat(self, chat: dict[str, Any], user_id: str | None) -> bool:
        """Insert `chat` on behalf of `user_id`. No-op without an identity."""
        if not user_id:
            return False
        await self._chats.insert_chat(chat)
        return True


def get_missing_keys(required: Iterable[str], environ: dict[str, str] | None = None) -> list[str]:
    env = os.environ if environ is None else environ
    return [key for key in required if not env.get(key)]
