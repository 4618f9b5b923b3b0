# Overview: Service-layer operations for AI chat conversations.

"""
Chat conversations with the AI assistant.

MULTI-TENANT: conversations are scoped to (company_id, user_id). Another
user's conversation is reported as not found, same as a foreign tenant's.
Messages are append-only.
"""
from __future__ import annotations

from ..extensions import db
from ..models import ChatConversation, ChatMessage
from ..validation import ValidationError
from . import ai_service
from .tenant_service import TenantAccessError, require_in_company

DEFAULT_TITLE = "Nueva conversación"
TITLE_MAX_LENGTH = 60


def _require_conversation(conversation_id: int, *, company_id: int, user_id: int) -> ChatConversation:
    conversation = require_in_company(ChatConversation, conversation_id, company_id, label="Conversation")
    if conversation.user_id != user_id:
        raise TenantAccessError("Conversation not found")
    return conversation


def create_conversation(*, company_id: int, user_id: int, title: str | None = None) -> dict:
    conversation = ChatConversation(
        company_id=company_id,
        user_id=user_id,
        title=(title or "").strip()[:255] or DEFAULT_TITLE,
    )
    db.session.add(conversation)
    db.session.commit()
    return conversation.to_dict()


def list_conversations(*, company_id: int, user_id: int) -> dict:
    rows = (
        db.session.query(ChatConversation)
        .filter(ChatConversation.company_id == company_id, ChatConversation.user_id == user_id)
        .order_by(ChatConversation.updated_at.desc(), ChatConversation.id.desc())
        .all()
    )
    return {"items": [c.to_dict() for c in rows], "count": len(rows)}


def get_conversation(*, conversation_id: int, company_id: int, user_id: int) -> dict:
    conversation = _require_conversation(conversation_id, company_id=company_id, user_id=user_id)
    data = conversation.to_dict()
    data["messages"] = [m.to_dict() for m in conversation.messages]
    return data


def list_messages(*, conversation_id: int, company_id: int, user_id: int) -> dict:
    conversation = _require_conversation(conversation_id, company_id=company_id, user_id=user_id)
    items = [m.to_dict() for m in conversation.messages]
    return {"items": items, "count": len(items)}


def send_message(*, conversation_id: int, company_id: int, user_id: int, content: str) -> dict:
    """
    Store the user's message, ask the assistant, store the reply.

    The user turn is committed before the model call, so it survives a
    failed or slow AI round-trip.
    """
    content = (content or "").strip()
    if not content:
        raise ValidationError("content is required")

    conversation = _require_conversation(conversation_id, company_id=company_id, user_id=user_id)
    history = [{"role": m.role, "content": m.content} for m in conversation.messages]

    user_message = ChatMessage(conversation_id=conversation.id, role="user", content=content)
    db.session.add(user_message)
    if conversation.title == DEFAULT_TITLE and not history:
        conversation.title = content[:TITLE_MAX_LENGTH]
    db.session.commit()

    reply = ai_service.chat(company_id, history, content)

    assistant_message = ChatMessage(conversation_id=conversation.id, role="assistant", content=reply)
    db.session.add(assistant_message)
    conversation.updated_at = db.func.now()
    db.session.commit()

    return {
        "user_message": user_message.to_dict(),
        "assistant_message": assistant_message.to_dict(),
        "ai_enabled": ai_service.is_enabled(),
    }


def delete_conversation(*, conversation_id: int, company_id: int, user_id: int) -> bool:
    conversation = _require_conversation(conversation_id, company_id=company_id, user_id=user_id)
    db.session.delete(conversation)
    db.session.commit()
    return True
