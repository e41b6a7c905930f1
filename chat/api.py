from __future__ import annotations

from uuid import UUID

from ninja import Router
from ninja.errors import HttpError

from accounts.auth import user_from_request_if_present

from .schemas import ChatExchangeOut, ChatMessageIn, ChatMessageOut, WelcomeOut
from .services import WELCOME_MESSAGE, ChatError, conversation_messages, post_message

router = Router(tags=["chat"])


@router.get("/welcome", response=WelcomeOut)
def welcome(request):
    return {"sender": "bot", "text": WELCOME_MESSAGE}


@router.post("/messages", response=ChatExchangeOut)
def send_message(request, payload: ChatMessageIn):
    try:
        mine, bot = post_message(
            text=payload.text,
            user=user_from_request_if_present(request),
            conversation_id=payload.conversation_id,
        )
    except ChatError as e:
        status = 404 if "not found" in str(e) else 400
        raise HttpError(status, str(e)) from e
    return {"conversation_id": mine.conversation_id, "message": mine, "reply": bot}


@router.get("/{conversation_id}/messages", response=list[ChatMessageOut])
def list_messages(request, conversation_id: UUID):
    try:
        return conversation_messages(
            conversation_id=conversation_id,
            user=user_from_request_if_present(request),
        )
    except ChatError as e:
        raise HttpError(404, str(e)) from e
