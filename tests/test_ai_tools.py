"""Tests for /api/ai/chat and the study tool endpoints."""
import json

import httpx
import pytest
from httpx import AsyncClient

from app.services.study_tools import fallback_flashcards
from tests.conftest import AUTH_HEADERS, completion


# ---------------------------------------------------------------------------
# /chat
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_chat_text_only_skips_provider(client: AsyncClient):
    resp = await client.post(
        "/api/ai/chat",
        json={"message": "hello", "inputType": "textOnly"},
        headers=AUTH_HEADERS,
    )
    assert resp.status_code == 200
    assert resp.json() == {"response": None}


@pytest.mark.asyncio
async def test_chat_returns_completion(client: AsyncClient, mock_ai):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["payload"] = json.loads(request.content)
        return completion("Article 370 granted special status.")

    mock_ai(handler)
    resp = await client.post(
        "/api/ai/chat",
        json={"message": "Explain Article 370", "language": "hi", "systemPrompt": "Custom."},
        headers=AUTH_HEADERS,
    )
    assert resp.status_code == 200
    assert resp.json()["response"] == "Article 370 granted special status."
    system = seen["payload"]["messages"][0]["content"]
    assert system.startswith("Custom.")
    assert "Hindi" in system


@pytest.mark.asyncio
async def test_chat_surfaces_provider_status(client: AsyncClient, mock_ai):
    mock_ai(lambda request: httpx.Response(403, json={}))
    resp = await client.post("/api/ai/chat", json={"message": "hello"}, headers=AUTH_HEADERS)
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Access denied. Please verify your API key permissions."


# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------

VOCAB_BODY = {"category": "polity", "sourceLanguage": "en", "targetLanguage": "hi", "count": 2}


@pytest.mark.asyncio
async def test_vocabulary_parses_model_json(client: AsyncClient, mock_ai):
    cards = [
        {"term": "Writ", "pronunciation": "/rit/", "definition": "A court order", "translation": "रिट", "example": "x"},
        {"term": "Quorum", "pronunciation": "/kwo-rum/", "definition": "Minimum members", "translation": "कोरम", "example": "y"},
    ]
    mock_ai(lambda request: completion("Here you go:\n```json\n" + json.dumps(cards) + "\n```"))

    resp = await client.post("/api/ai/generate-vocabulary", json=VOCAB_BODY, headers=AUTH_HEADERS)
    assert resp.status_code == 200
    data = resp.json()
    assert data["flashcards"] == cards
    assert data["category"] == "polity"
    assert data["difficulty"] == "intermediate"
    assert "generatedAt" in data


@pytest.mark.asyncio
async def test_vocabulary_falls_back_on_unparseable_reply(client: AsyncClient, mock_ai):
    mock_ai(lambda request: completion("Sorry, I cannot do that."))
    body = {**VOCAB_BODY, "category": "history", "count": 3}
    resp = await client.post("/api/ai/generate-vocabulary", json=body, headers=AUTH_HEADERS)
    assert resp.status_code == 200
    terms = [card["term"] for card in resp.json()["flashcards"]]
    assert terms == ["Independence", "Revolution", "Empire"]


@pytest.mark.asyncio
async def test_vocabulary_falls_back_on_transport_error(client: AsyncClient, mock_ai):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    mock_ai(handler)
    resp = await client.post("/api/ai/generate-vocabulary", json=VOCAB_BODY, headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["flashcards"] == fallback_flashcards("polity", 2)


@pytest.mark.asyncio
async def test_vocabulary_falls_back_when_array_has_no_cards(client: AsyncClient, mock_ai):
    mock_ai(lambda request: completion('["Governance", "Polity"]'))
    resp = await client.post("/api/ai/generate-vocabulary", json=VOCAB_BODY, headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["flashcards"] == fallback_flashcards("polity", 2)


@pytest.mark.asyncio
async def test_vocabulary_drops_non_object_entries(client: AsyncClient, mock_ai):
    mock_ai(lambda request: completion('[{"term": "Writ"}, "stray", 3]'))
    resp = await client.post("/api/ai/generate-vocabulary", json=VOCAB_BODY, headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["flashcards"] == [{"term": "Writ"}]


@pytest.mark.asyncio
async def test_vocabulary_reports_exhausted_credits(client: AsyncClient, mock_ai):
    mock_ai(lambda request: httpx.Response(402, json={"error": "no credits"}))
    resp = await client.post("/api/ai/generate-vocabulary", json=VOCAB_BODY, headers=AUTH_HEADERS)
    assert resp.status_code == 402
    data = resp.json()
    assert data["code"] == "API_CREDITS_EXHAUSTED"
    assert data["status"] == 402


@pytest.mark.asyncio
async def test_vocabulary_validates_input(client: AsyncClient):
    resp = await client.post(
        "/api/ai/generate-vocabulary",
        json={"category": "polity", "sourceLanguage": "en"},
        headers=AUTH_HEADERS,
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Missing required fields"

    resp = await client.post(
        "/api/ai/generate-vocabulary", json={**VOCAB_BODY, "count": 51}, headers=AUTH_HEADERS
    )
    assert resp.status_code == 422


def test_fallback_flashcards_unknown_category_uses_general():
    cards = fallback_flashcards("astrology", 2)
    assert [c["term"] for c in cards] == ["Governance", "Administration"]
    assert cards[0]["pronunciation"] == "/governance/"


# ---------------------------------------------------------------------------
# Essay / mock evaluation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_enhance_essay(client: AsyncClient, mock_ai):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["payload"] = json.loads(request.content)
        return completion("An improved essay.")

    mock_ai(handler)
    resp = await client.post(
        "/api/ai/enhance-essay",
        json={"essayText": "Water is life.", "targetLanguage": "hi", "essayType": "environment", "wordLimit": 250},
        headers=AUTH_HEADERS,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["enhancedEssay"] == "An improved essay."
    assert data["wordLimit"] == 250
    assert seen["payload"]["temperature"] == 0.5
    assert "Word Limit: 250 words" in seen["payload"]["messages"][1]["content"]


@pytest.mark.asyncio
async def test_enhance_essay_requires_text(client: AsyncClient):
    resp = await client.post("/api/ai/enhance-essay", json={}, headers=AUTH_HEADERS)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Essay text is required"


@pytest.mark.asyncio
async def test_mock_evaluation_counts_words(client: AsyncClient, mock_ai):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["payload"] = json.loads(request.content)
        return completion("**📊 OVERALL SCORE: 72/100**")

    mock_ai(handler)
    resp = await client.post(
        "/api/ai/mock-evaluation",
        json={
            "examType": "upsc",
            "language": "en",
            "questionType": "essay",
            "subject": "Ethics",
            "answerText": "Integrity means  acting on values.",
        },
        headers=AUTH_HEADERS,
    )
    assert resp.status_code == 200
    assert resp.json()["evaluation"].startswith("**📊 OVERALL SCORE")
    user_prompt = seen["payload"]["messages"][1]["content"]
    assert "Current Word Count: 5 words" in user_prompt
    assert "Union Public Service Commission (UPSC)" in user_prompt
    assert seen["payload"]["temperature"] == 0.2


@pytest.mark.asyncio
async def test_mock_evaluation_requires_all_fields(client: AsyncClient):
    resp = await client.post(
        "/api/ai/mock-evaluation",
        json={"examType": "upsc", "language": "en"},
        headers=AUTH_HEADERS,
    )
    assert resp.status_code == 400


# ---------------------------------------------------------------------------
# Mains evaluation
# ---------------------------------------------------------------------------

MAINS_BODY = {"question": "Discuss cooperative federalism.", "answer": "It is...", "subject": "GS2"}


@pytest.mark.asyncio
async def test_evaluate_mains_returns_json_object(client: AsyncClient, mock_ai):
    evaluation = {"score": {"total": 7}, "overallComment": "Good structure"}
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["host"] = request.url.host
        seen["payload"] = json.loads(request.content)
        return completion(json.dumps(evaluation))

    mock_ai(handler)
    resp = await client.post("/api/ai/evaluate-mains", json=MAINS_BODY, headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert resp.json() == evaluation
    assert seen["host"] == "api.openai.com"
    assert seen["payload"]["response_format"] == {"type": "json_object"}
    assert seen["payload"]["messages"][1]["content"].startswith("Subject: GS2\n")


@pytest.mark.asyncio
async def test_evaluate_mains_without_subject_omits_line(client: AsyncClient, mock_ai):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["payload"] = json.loads(request.content)
        return completion('{"score": {"total": 6}}')

    mock_ai(handler)
    body = {"question": MAINS_BODY["question"], "answer": MAINS_BODY["answer"]}
    resp = await client.post("/api/ai/evaluate-mains", json=body, headers=AUTH_HEADERS)
    assert resp.status_code == 200
    user_prompt = seen["payload"]["messages"][1]["content"]
    assert "Subject" not in user_prompt
    assert user_prompt.startswith("Language: English")


@pytest.mark.asyncio
async def test_evaluate_mains_accepts_fenced_json(client: AsyncClient, mock_ai):
    mock_ai(lambda request: completion('```json\n{"score": {"total": 5}}\n```'))
    resp = await client.post("/api/ai/evaluate-mains", json=MAINS_BODY, headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert resp.json() == {"score": {"total": 5}}


@pytest.mark.asyncio
async def test_evaluate_mains_invalid_json(client: AsyncClient, mock_ai):
    mock_ai(lambda request: completion("not json at all"))
    resp = await client.post("/api/ai/evaluate-mains", json=MAINS_BODY, headers=AUTH_HEADERS)
    assert resp.status_code == 500
    assert resp.json() == {"error": "AI returned invalid format", "raw": "not json at all"}


@pytest.mark.asyncio
async def test_evaluate_mains_requires_question_and_answer(client: AsyncClient):
    resp = await client.post("/api/ai/evaluate-mains", json={"question": "Q"}, headers=AUTH_HEADERS)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Question and answer are required"
