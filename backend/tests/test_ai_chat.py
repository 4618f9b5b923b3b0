# Overview: Pytest coverage for the Gemini wrapper, AI fallbacks and chat conversations.

import json

import httpx
import pytest

from insightbi.services import ai_service, gemini_client
from insightbi.services.ai_service import AI_DISABLED_MESSAGE, AI_ERROR_MESSAGE
from insightbi.services.auth_service import create_user
from insightbi.services.gemini_client import AIServiceError


@pytest.fixture
def ai_enabled(app, monkeypatch):
    monkeypatch.setitem(app.config, "GEMINI_API_KEY", "test-key")


def _mock_transport(monkeypatch, handler):
    real_client = httpx.Client

    def _client(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(gemini_client.httpx, "Client", _client)


def _reply(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class TestGeminiClient:

    def test_missing_key(self, app):
        with pytest.raises(AIServiceError):
            gemini_client.generate(model="m", contents=[])

    def test_text_reply(self, app, ai_enabled, monkeypatch):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["key"] = request.headers["x-goog-api-key"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_reply("  Hola  "))

        _mock_transport(monkeypatch, handler)
        text = gemini_client.generate(
            model="gemini-2.5-flash",
            contents=[{"role": "user", "parts": [{"text": "hola"}]}],
            system_instruction="Eres un analista.",
        )
        assert text == "Hola"
        assert seen["url"].endswith("/models/gemini-2.5-flash:generateContent")
        assert seen["key"] == "test-key"
        assert seen["body"]["systemInstruction"]["parts"][0]["text"] == "Eres un analista."
        assert "responseSchema" not in seen["body"]["generationConfig"]

    def test_structured_reply(self, app, ai_enabled, monkeypatch):
        def handler(request):
            body = json.loads(request.content)
            assert body["generationConfig"]["responseMimeType"] == "application/json"
            return httpx.Response(200, json=_reply('{"summary": "ok"}'))

        _mock_transport(monkeypatch, handler)
        result = gemini_client.generate(model="m", contents=[], response_schema={"type": "OBJECT"})
        assert result == {"summary": "ok"}

    @pytest.mark.parametrize("response", [
        httpx.Response(500, text="boom"),
        httpx.Response(200, json={"candidates": []}),
        httpx.Response(200, json=_reply("not json")),
    ])
    def test_failures_raise(self, app, ai_enabled, monkeypatch, response):
        _mock_transport(monkeypatch, lambda request: response)
        with pytest.raises(AIServiceError):
            gemini_client.generate(model="m", contents=[], response_schema={"type": "OBJECT"})

    def test_transport_error(self, app, ai_enabled, monkeypatch):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        _mock_transport(monkeypatch, handler)
        with pytest.raises(AIServiceError):
            gemini_client.generate(model="m", contents=[])


def test_to_gemini_contents_maps_roles_and_truncates():
    history = [
        {"role": "user", "content": "uno"},
        {"role": "assistant", "content": "dos"},
        {"role": "user", "content": "tres"},
    ]
    contents = ai_service.to_gemini_contents(history, "cuatro", limit=2)
    assert [c["role"] for c in contents] == ["model", "user", "user"]
    assert [c["parts"][0]["text"] for c in contents] == ["dos", "tres", "cuatro"]
    assert len(ai_service.to_gemini_contents(history, "x", limit=0)) == 1


class TestAiRoutes:

    def test_status_disabled(self, client, headers_a):
        resp = client.get("/api/ai/status", headers=headers_a)
        assert resp.status_code == 200
        assert resp.json["enabled"] is False

    def test_analysis_disabled(self, client, headers_a):
        resp = client.post("/api/ai/analysis", headers=headers_a)
        assert resp.status_code == 200
        assert resp.json["enabled"] is False
        assert resp.json["insights"] == []

    def test_analysis_error_fallback(self, client, headers_a, ai_enabled, monkeypatch):
        def _fail(**kwargs):
            raise AIServiceError("AI service returned 503")

        monkeypatch.setattr(gemini_client, "generate", _fail)
        resp = client.post("/api/ai/analysis", headers=headers_a)
        assert resp.status_code == 200
        assert resp.json["error"] == "AI service returned 503"

    def test_analysis_trims_lists(self, client, headers_a, ai_enabled, monkeypatch):
        insight = {"type": "warning", "title": "t", "description": "d", "impact": "high",
                   "category": "inventory", "confidence": 0.9}
        monkeypatch.setattr(gemini_client, "generate", lambda **kwargs: {
            "summary": "Resumen", "insights": [insight] * 8, "recommendations": ["r"] * 7,
        })
        resp = client.post("/api/ai/analysis", headers=headers_a)
        assert resp.json["summary"] == "Resumen"
        assert len(resp.json["insights"]) == 5
        assert len(resp.json["recommendations"]) == 5

    def test_rule_based_recommendations(self, client, db_session, headers_a, product_a):
        product_a.stock = 0
        db_session.commit()
        resp = client.get("/api/ai/recommendations", headers=headers_a)
        assert resp.status_code == 200
        titles = [i["title"] for i in resp.json["items"]]
        assert "Productos Agotados" in titles
        assert resp.json["ai_enabled"] is False


class TestChat:

    def _conversation(self, client, headers, title=None):
        return client.post("/api/chat/conversations", json={"title": title} if title else {}, headers=headers)

    def test_disabled_reply_is_stored(self, client, headers_a):
        conversation = self._conversation(client, headers_a).json
        resp = client.post(
            f"/api/chat/conversations/{conversation['id']}/messages",
            json={"content": "¿Qué productos debo reponer?"},
            headers=headers_a,
        )
        assert resp.status_code == 201
        assert resp.json["assistant_message"]["content"] == AI_DISABLED_MESSAGE
        assert resp.json["ai_enabled"] is False

        detail = client.get(f"/api/chat/conversations/{conversation['id']}", headers=headers_a).json
        assert detail["title"] == "¿Qué productos debo reponer?"
        assert [m["role"] for m in detail["messages"]] == ["user", "assistant"]

    def test_history_is_sent(self, client, headers_a, ai_enabled, monkeypatch):
        calls = []

        def _generate(**kwargs):
            calls.append(kwargs)
            return f"respuesta {len(calls)}"

        monkeypatch.setattr(gemini_client, "generate", _generate)
        conversation = self._conversation(client, headers_a, "Ventas").json
        url = f"/api/chat/conversations/{conversation['id']}/messages"
        client.post(url, json={"content": "hola"}, headers=headers_a)
        second = client.post(url, json={"content": "¿y ahora?"}, headers=headers_a)

        assert second.json["assistant_message"]["content"] == "respuesta 2"
        texts = [c["parts"][0]["text"] for c in calls[1]["contents"]]
        assert texts == ["hola", "respuesta 1", "¿y ahora?"]
        assert "CONTEXTO DE NEGOCIO ACTUAL" in calls[1]["system_instruction"]

        messages = client.get(url, headers=headers_a).json
        assert messages["count"] == 4

    def test_error_fallback_reply(self, client, headers_a, ai_enabled, monkeypatch):
        def _fail(**kwargs):
            raise AIServiceError("AI service unavailable")

        monkeypatch.setattr(gemini_client, "generate", _fail)
        conversation = self._conversation(client, headers_a).json
        resp = client.post(
            f"/api/chat/conversations/{conversation['id']}/messages",
            json={"content": "hola"},
            headers=headers_a,
        )
        assert resp.json["assistant_message"]["content"] == AI_ERROR_MESSAGE

    def test_empty_message(self, client, headers_a):
        conversation = self._conversation(client, headers_a).json
        resp = client.post(
            f"/api/chat/conversations/{conversation['id']}/messages", json={"content": "  "}, headers=headers_a,
        )
        assert resp.status_code == 400

    def test_conversations_are_per_user(self, client, headers_a, company_a):
        create_user(
            username="analyst_a", email="analyst_a@andes.cl", password="Password123!",
            company_id=company_a.id, role="analyst",
        )
        other = client.post("/api/auth/login", json={"username": "analyst_a", "password": "Password123!"}).json
        other_headers = {"Authorization": f"Bearer {other['token']}"}

        conversation = self._conversation(client, headers_a, "privada").json
        assert client.get(f"/api/chat/conversations/{conversation['id']}", headers=other_headers).status_code == 404
        assert client.get("/api/chat/conversations", headers=other_headers).json["count"] == 0

    def test_delete(self, client, headers_a):
        conversation = self._conversation(client, headers_a).json
        assert client.delete(f"/api/chat/conversations/{conversation['id']}", headers=headers_a).status_code == 200
        assert client.get(f"/api/chat/conversations/{conversation['id']}", headers=headers_a).status_code == 404
