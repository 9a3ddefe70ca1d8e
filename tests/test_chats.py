"""Tests for chat history CRUD under /api/chat."""
import httpx
import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.database_models import User
from tests.conftest import AUTH_HEADERS, completion


async def _create_chat(client: AsyncClient, **body) -> dict:
    resp = await client.post("/api/chat", json=body, headers=AUTH_HEADERS)
    assert resp.status_code == 201
    return resp.json()["chat"]


@pytest.mark.asyncio
async def test_create_empty_chat_gets_numbered_name(client: AsyncClient):
    chat = await _create_chat(client)
    assert chat["name"] == "Chat 1"
    assert chat["messages"] == []
    assert chat["settings"]["language"] == "en"
    assert chat["settings"]["model"] == "sonar-pro"
    assert "Indicore-Ai" in chat["settings"]["systemPrompt"]

    second = await _create_chat(client)
    assert second["name"] == "Chat 2"


@pytest.mark.asyncio
async def test_create_chat_with_first_message(client: AsyncClient, db_session: AsyncSession):
    """Naming fails without providers, so the numbered name is kept."""
    chat = await _create_chat(client, message="What is federalism?")
    assert chat["name"] == "Chat 1"
    assert len(chat["messages"]) == 1
    first = chat["messages"][0]
    assert first["sender"] == "user"
    assert first["text"] == "What is federalism?"
    assert first["index"] == 0

    user = (await db_session.execute(select(User).where(User.id == "test-user-1"))).scalar_one()
    assert user.total_questions == 1
    assert user.session_questions == 1
    assert user.email == "test1@example.com"


@pytest.mark.asyncio
async def test_create_chat_uses_generated_name(client: AsyncClient, mock_ai, monkeypatch):
    monkeypatch.setattr(settings, "GROQ_API_KEY", "groq-test-key")

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.host == "api.groq.com"
        return completion('"Indian Federalism"')

    mock_ai(handler)
    chat = await _create_chat(client, message="Explain federalism in India")
    assert chat["name"] == "Indian Federalism"


@pytest.mark.asyncio
async def test_append_message_renames_generic_chat(client: AsyncClient, mock_ai, monkeypatch):
    chat = await _create_chat(client)
    assert chat["name"] == "Chat 1"

    monkeypatch.setattr(settings, "GROQ_API_KEY", "groq-test-key")
    mock_ai(lambda request: completion("Monsoon Basics"))

    resp = await client.post(
        "/api/chat",
        json={"chatId": chat["id"], "message": "How does the monsoon work?"},
        headers=AUTH_HEADERS,
    )
    assert resp.status_code == 200
    data = resp.json()["chat"]
    assert data["name"] == "Monsoon Basics"
    assert [m["text"] for m in data["messages"]] == ["How does the monsoon work?"]


@pytest.mark.asyncio
async def test_append_requires_message(client: AsyncClient):
    chat = await _create_chat(client)
    resp = await client.post("/api/chat", json={"chatId": chat["id"], "message": "  "}, headers=AUTH_HEADERS)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Message is required"


@pytest.mark.asyncio
async def test_append_to_unknown_chat_returns_404(client: AsyncClient):
    resp = await client.post("/api/chat", json={"chatId": 4242, "message": "hi"}, headers=AUTH_HEADERS)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_script_markup_is_rejected(client: AsyncClient):
    chat = await _create_chat(client)
    resp = await client.post(
        "/api/chat",
        json={"chatId": chat["id"], "message": "<script>alert(1)</script>"},
        headers=AUTH_HEADERS,
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_overlong_message_is_rejected(client: AsyncClient):
    chat = await _create_chat(client)
    resp = await client.post(
        "/api/chat",
        json={"chatId": chat["id"], "message": "a" * (settings.CHAT_MESSAGE_MAX_LENGTH + 1)},
        headers=AUTH_HEADERS,
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_list_chats_pinned_first_and_hides_archived(client: AsyncClient):
    first = await _create_chat(client)
    second = await _create_chat(client)
    archived = await _create_chat(client)

    await client.patch(f"/api/chat/{first['id']}/update", json={"pinned": True}, headers=AUTH_HEADERS)
    await client.patch(f"/api/chat/{archived['id']}/organize", json={"archived": True}, headers=AUTH_HEADERS)

    resp = await client.get("/api/chat", headers=AUTH_HEADERS)
    assert resp.status_code == 200
    ids = [c["id"] for c in resp.json()["chats"]]
    assert ids == [first["id"], second["id"]]

    resp = await client.get("/api/chat", params={"archived": "true"}, headers=AUTH_HEADERS)
    assert [c["id"] for c in resp.json()["chats"]] == [archived["id"]]


@pytest.mark.asyncio
async def test_list_chats_filters_by_folder_and_tag(client: AsyncClient):
    a = await _create_chat(client)
    b = await _create_chat(client)
    await client.patch(
        f"/api/chat/{a['id']}/organize",
        json={"folder": "Polity", "tags": ["gs2", "revision"]},
        headers=AUTH_HEADERS,
    )
    await client.patch(f"/api/chat/{b['id']}/organize", json={"tags": ["gs3"]}, headers=AUTH_HEADERS)

    resp = await client.get("/api/chat", params={"folder": "Polity"}, headers=AUTH_HEADERS)
    assert [c["id"] for c in resp.json()["chats"]] == [a["id"]]

    resp = await client.get("/api/chat", params={"tag": "gs3"}, headers=AUTH_HEADERS)
    assert [c["id"] for c in resp.json()["chats"]] == [b["id"]]


@pytest.mark.asyncio
async def test_organize_leaves_omitted_fields(client: AsyncClient):
    chat = await _create_chat(client)
    await client.patch(f"/api/chat/{chat['id']}/organize", json={"folder": "History"}, headers=AUTH_HEADERS)
    resp = await client.patch(f"/api/chat/{chat['id']}/organize", json={"tags": ["ancient"]}, headers=AUTH_HEADERS)
    assert resp.status_code == 200
    data = resp.json()["chat"]
    assert data["folder"] == "History"
    assert data["tags"] == ["ancient"]
    assert data["archived"] is False


@pytest.mark.asyncio
async def test_rename_validation(client: AsyncClient):
    chat = await _create_chat(client)

    resp = await client.put(f"/api/chat/{chat['id']}/update", json={"name": "   "}, headers=AUTH_HEADERS)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Chat name cannot be empty"

    resp = await client.put(f"/api/chat/{chat['id']}/update", json={"name": "x" * 101}, headers=AUTH_HEADERS)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Chat name is too long (max 100 characters)"

    resp = await client.put(
        f"/api/chat/{chat['id']}/update",
        json={"name": "  Economy Notes  ", "pinned": True},
        headers=AUTH_HEADERS,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["chat"]["name"] == "Economy Notes"
    assert data["chat"]["pinned"] is True
    assert set(data["chat"]) == {"id", "name", "pinned", "lastMessageAt", "createdAt"}


@pytest.mark.asyncio
async def test_put_appends_assistant_message(client: AsyncClient):
    chat = await _create_chat(client, message="Define GDP")
    resp = await client.put(
        f"/api/chat/{chat['id']}",
        json={"message": "GDP is the total value of goods and services.", "name": "GDP"},
        headers=AUTH_HEADERS,
    )
    assert resp.status_code == 200
    data = resp.json()["chat"]
    assert data["name"] == "GDP"
    assert [m["sender"] for m in data["messages"]] == ["user", "assistant"]
    assert data["messages"][1]["index"] == 1


@pytest.mark.asyncio
async def test_delete_is_soft(client: AsyncClient):
    chat = await _create_chat(client)
    resp = await client.delete(f"/api/chat/{chat['id']}", headers=AUTH_HEADERS)
    assert resp.status_code == 200

    resp = await client.get("/api/chat", headers=AUTH_HEADERS)
    assert resp.json()["chats"] == []

    resp = await client.get(f"/api/chat/{chat['id']}", headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["chat"]["isActive"] is False


@pytest.mark.asyncio
async def test_message_bookmark_edit_and_bounds(client: AsyncClient):
    chat = await _create_chat(client, message="Who wrote Arthashastra?")
    await client.put(f"/api/chat/{chat['id']}", json={"message": "Kautilya wrote it."}, headers=AUTH_HEADERS)
    base = f"/api/chat/{chat['id']}/messages"

    resp = await client.get(f"{base}/1", headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["message"]["sender"] == "assistant"

    resp = await client.get(f"{base}/5", headers=AUTH_HEADERS)
    assert resp.status_code == 404

    resp = await client.patch(f"{base}/1", json={"bookmarked": True}, headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["message"]["bookmarked"] is True

    resp = await client.patch(f"{base}/1", json={"bookmarked": "yes"}, headers=AUTH_HEADERS)
    assert resp.status_code == 422

    resp = await client.put(f"{base}/1", json={"text": "Edited"}, headers=AUTH_HEADERS)
    assert resp.status_code == 403

    resp = await client.put(f"{base}/0", json={"text": "Who wrote the Arthashastra?"}, headers=AUTH_HEADERS)
    assert resp.status_code == 200
    edited = resp.json()["message"]
    assert edited["text"] == "Who wrote the Arthashastra?"
    assert edited["editedAt"] is not None


@pytest.mark.asyncio
async def test_delete_message_resets_last_message_at(client: AsyncClient):
    chat = await _create_chat(client, message="First question")
    first_timestamp = chat["messages"][0]["timestamp"]
    await client.put(f"/api/chat/{chat['id']}", json={"message": "An answer."}, headers=AUTH_HEADERS)

    resp = await client.delete(f"/api/chat/{chat['id']}/messages/1", headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["success"] is True

    data = (await client.get(f"/api/chat/{chat['id']}", headers=AUTH_HEADERS)).json()["chat"]
    assert len(data["messages"]) == 1
    assert data["lastMessageAt"] == first_timestamp

    resp = await client.delete(f"/api/chat/{chat['id']}/messages/3", headers=AUTH_HEADERS)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_unsupported_language_is_rejected(client: AsyncClient):
    resp = await client.post("/api/chat", json={"message": "hola", "language": "xx"}, headers=AUTH_HEADERS)
    assert resp.status_code == 400
