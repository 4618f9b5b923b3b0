# Overview: Flask API routes for AI chat conversations and messages.

"""
Chat routes.

Conversations belong to the calling user; someone else's conversation
answers 404, same as a missing one.
"""
from flask import Blueprint, request, g, current_app

from ..decorators import require_auth, require_permission
from ..services import chat_service
from ..services.tenant_service import TenantAccessError
from ..validation import ValidationError

chat_bp = Blueprint("chat", __name__, url_prefix="/api/chat")


def _owner() -> dict:
    return {"company_id": g.company_id, "user_id": g.current_user.id}


@chat_bp.get("/conversations")
@require_auth
@require_permission("USE_AI")
def list_conversations_route():
    return chat_service.list_conversations(**_owner())


@chat_bp.post("/conversations")
@require_auth
@require_permission("USE_AI")
def create_conversation_route():
    payload = request.get_json(silent=True) or {}
    return chat_service.create_conversation(title=payload.get("title"), **_owner()), 201


@chat_bp.get("/conversations/<int:conversation_id>")
@require_auth
@require_permission("USE_AI")
def get_conversation_route(conversation_id: int):
    try:
        return chat_service.get_conversation(conversation_id=conversation_id, **_owner())
    except TenantAccessError:
        return {"error": "Conversation not found"}, 404


@chat_bp.delete("/conversations/<int:conversation_id>")
@require_auth
@require_permission("USE_AI")
def delete_conversation_route(conversation_id: int):
    try:
        chat_service.delete_conversation(conversation_id=conversation_id, **_owner())
    except TenantAccessError:
        return {"error": "Conversation not found"}, 404
    return {"ok": True}


@chat_bp.get("/conversations/<int:conversation_id>/messages")
@require_auth
@require_permission("USE_AI")
def list_messages_route(conversation_id: int):
    try:
        return chat_service.list_messages(conversation_id=conversation_id, **_owner())
    except TenantAccessError:
        return {"error": "Conversation not found"}, 404


@chat_bp.post("/conversations/<int:conversation_id>/messages")
@require_auth
@require_permission("USE_AI")
def send_message_route(conversation_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        result = chat_service.send_message(
            conversation_id=conversation_id, content=payload.get("content"), **_owner()
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except TenantAccessError:
        return {"error": "Conversation not found"}, 404
    except Exception:
        current_app.logger.exception("Failed to send chat message")
        return {"error": "Internal server error"}, 500
    return result, 201
