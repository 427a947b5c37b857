# chat CRUD on behalf of the calling user

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Response, status

from chatstore.services.chat_actions import ChatActions
from chatstore.storage.errors import NotFound, Unauthorized

from .deps import RequestIdentity, get_chat_actions, get_identity
from .schemas import ChatListResponse, ChatPayload, ClearChatsResponse, SaveChatResponse

router = APIRouter(tags=["chats"])


@router.get("/chats", response_model=ChatListResponse)
async def list_chats(
    identity: RequestIdentity = Depends(get_identity),  # noqa: B008
    actions: ChatActions = Depends(get_chat_actions),  # noqa: B008
) -> ChatListResponse:
    return ChatListResponse(chats=await actions.get_chats(identity.user_id))


@router.get("/chats/{chat_id}")
async def get_chat(
    chat_id: str,
    identity: RequestIdentity = Depends(get_identity),  # noqa: B008
    actions: ChatActions = Depends(get_chat_actions),  # noqa: B008
) -> dict[str, Any]:
    if not identity.user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    chat = await actions.get_chat(chat_id, identity.user_id)
    if chat is None:
        raise HTTPException(status_code=404, detail="Chat not found")
    return chat


@router.post("/chats", response_model=SaveChatResponse, status_code=status.HTTP_201_CREATED)
async def save_chat(
    req: ChatPayload,
    identity: RequestIdentity = Depends(get_identity),  # noqa: B008
    actions: ChatActions = Depends(get_chat_actions),  # noqa: B008
) -> SaveChatResponse:
    if not identity.user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    # chats are always filed under the caller
    chat = {**req.model_dump(exclude_none=True), "userId": identity.user_id}
    return SaveChatResponse(saved=await actions.save_chat(chat, identity.user_id))


@router.delete("/chats/{chat_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_chat(
    chat_id: str,
    identity: RequestIdentity = Depends(get_identity),  # noqa: B008
    actions: ChatActions = Depends(get_chat_actions),  # noqa: B008
) -> Response:
    try:
        await actions.remove_chat(chat_id, identity.user_id)
    except Unauthorized as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/chats", response_model=ClearChatsResponse)
async def clear_chats(
    identity: RequestIdentity = Depends(get_identity),  # noqa: B008
    actions: ChatActions = Depends(get_chat_actions),  # noqa: B008
) -> ClearChatsResponse:
    try:
        deleted = await actions.clear_chats(identity.user_id)
    except Unauthorized as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    return ClearChatsResponse(deleted=deleted)


@router.post("/chats/{chat_id}/share")
async def share_chat(
    chat_id: str,
    identity: RequestIdentity = Depends(get_identity),  # noqa: B008
    actions: ChatActions = Depends(get_chat_actions),  # noqa: B008
) -> dict[str, Any]:
    try:
        return await actions.share_chat(chat_id, identity.user_id)
    except Unauthorized as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.get("/share/{chat_id}")
async def get_shared_chat(
    chat_id: str,
    actions: ChatActions = Depends(get_chat_actions),  # noqa: B008
) -> dict[str, Any]:
    chat = await actions.get_shared_chat(chat_id)
    if chat is None:
        raise HTTPException(status_code=404, detail="Chat not found")
    return chat
