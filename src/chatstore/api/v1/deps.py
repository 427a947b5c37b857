# identity + service dependencies for the v1 routers

from fastapi import Header, Request
from pydantic import BaseModel

from chatstore.config.config import AppSettings
from chatstore.services.chat_actions import ChatActions
from chatstore.services.records import ChatRecords
from chatstore.storage.kv.store import KeyValueStore


class RequestIdentity(BaseModel):
    # None means anonymous; every ownership check then fails closed
    user_id: str | None = None


async def get_identity(
    x_user_id: str | None = Header(None, alias="X-User-ID"),
) -> RequestIdentity:
    """
    Identity extraction hook.

    The session/auth layer in front of us resolves the caller and injects
    X-User-ID. Without it the request is anonymous.
    """
    return RequestIdentity(user_id=x_user_id or None)


def get_store(request: Request) -> KeyValueStore:
    return request.app.state.store


def get_settings_dep(request: Request) -> AppSettings:
    return request.app.state.settings


def get_chat_actions(request: Request) -> ChatActions:
    return ChatActions(ChatRecords(get_store(request)))
