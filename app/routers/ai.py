"""
AI endpoints: chat completions (plain and streamed), translation and the
study tools.

Route summary
-------------
POST /api/ai/chat                 — one-shot completion
POST /api/ai/chat-stream          — streamed completion (text/plain)
POST /api/ai/translate            — translation chain
POST /api/ai/generate-vocabulary  — bilingual flashcards
POST /api/ai/enhance-essay        — essay translation + enhancement
POST /api/ai/mock-evaluation      — practice answer evaluation
POST /api/ai/evaluate-mains       — structured mains evaluation (JSON)
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse

from app.dependencies.auth import get_current_user_id
from app.models.schemas import (
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatStreamRequest,
    EssayRequest,
    EssayResponse,
    MainsEvaluationRequest,
    MockEvaluationRequest,
    MockEvaluationResponse,
    TranslateRequest,
    TranslateResponse,
    VocabularyRequest,
    VocabularyResponse,
)
from app.services.ai_providers import AIClient, AIProviderError, get_ai_client
from app.services.chat_stream import build_messages, calculate_max_tokens, relay_stream
from app.services.study_tools import (
    InvalidAIFormat,
    enhance_essay,
    evaluate_mains,
    evaluate_mock_answer,
    generate_vocabulary,
)
from app.services.translation import TranslationService, get_translation_service
from app.utils.helpers import utcnow

logger = logging.getLogger(__name__)

router = APIRouter()


def _provider_error_response(exc: AIProviderError, include_code: bool = False) -> JSONResponse:
    """JSON error carrying the upstream status and its user-facing message."""
    content = {"detail": exc.message}
    if include_code:
        content["code"] = exc.code
        content["status"] = exc.status_code
    return JSONResponse(status_code=exc.status_code, content=content)


def _require(*values: Optional[str], detail: str = "Missing required fields") -> None:
    if any(not value or not str(value).strip() for value in values):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------

@router.post("/chat", response_model=ChatCompletionResponse)
async def chat_completion(
    body: ChatCompletionRequest,
    user_id: str = Depends(get_current_user_id),
    ai: AIClient = Depends(get_ai_client),
):
    """Single non-streamed answer; ``inputType=textOnly`` skips the provider."""
    _require(body.message, detail="Message is required")
    if body.input_type == "textOnly":
        return ChatCompletionResponse(response=None)

    try:
        answer = await ai.complete(
            build_messages(body.message, body.system_prompt, body.language),
            model=body.model,
            max_tokens=4000,
            temperature=0.7,
            frequency_penalty=1,
        )
    except AIProviderError as exc:
        logger.error("Chat completion failed for %s: %s", user_id, exc)
        return _provider_error_response(exc)
    return ChatCompletionResponse(response=answer)


@router.post("/chat-stream")
async def chat_stream(
    body: ChatStreamRequest,
    user_id: str = Depends(get_current_user_id),
    ai: AIClient = Depends(get_ai_client),
):
    """
    Relay a Perplexity stream as plain text.

    Upstream errors before the first byte become a plain-text response with
    the upstream status.
    """
    _require(body.message, detail="Message is required")

    try:
        stream = await ai.open_chat_stream(
            build_messages(body.message, body.system_prompt, body.language),
            model=body.model,
            max_tokens=calculate_max_tokens(body.message),
            temperature=0.7,
            top_p=0.9,
        )
    except AIProviderError as exc:
        logger.error("Chat stream failed to open for %s: %s", user_id, exc)
        return PlainTextResponse(exc.message, status_code=exc.status_code)

    return StreamingResponse(
        relay_stream(stream),
        media_type="text/plain; charset=utf-8",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


# ---------------------------------------------------------------------------
# Translation
# ---------------------------------------------------------------------------

@router.post("/translate", response_model=TranslateResponse)
async def translate(
    body: TranslateRequest,
    translator: TranslationService = Depends(get_translation_service),
):
    _require(body.text, body.source_language, body.target_language)
    result = await translator.translate(body.text, body.source_language, body.target_language)
    return TranslateResponse(
        translated_text=result.text,
        source_language=body.source_language,
        target_language=body.target_language,
        original_text=body.text,
        provider=result.provider,
    )


# ---------------------------------------------------------------------------
# Study tools
# ---------------------------------------------------------------------------

@router.post("/generate-vocabulary", response_model=VocabularyResponse)
async def vocabulary(
    body: VocabularyRequest,
    user_id: str = Depends(get_current_user_id),
    ai: AIClient = Depends(get_ai_client),
):
    _require(body.category, body.source_language, body.target_language)
    try:
        flashcards = await generate_vocabulary(
            ai,
            body.category,
            body.source_language,
            body.target_language,
            difficulty=body.difficulty,
            count=body.count,
        )
    except AIProviderError as exc:
        return _provider_error_response(exc, include_code=True)

    return VocabularyResponse(
        flashcards=flashcards,
        category=body.category,
        source_language=body.source_language,
        target_language=body.target_language,
        difficulty=body.difficulty,
        generated_at=utcnow(),
    )


@router.post("/enhance-essay", response_model=EssayResponse)
async def essay(
    body: EssayRequest,
    user_id: str = Depends(get_current_user_id),
    ai: AIClient = Depends(get_ai_client),
):
    _require(body.essay_text, detail="Essay text is required")
    try:
        enhanced = await enhance_essay(
            ai,
            body.essay_text,
            body.source_language,
            body.target_language,
            essay_type=body.essay_type,
            word_limit=body.word_limit,
        )
    except AIProviderError as exc:
        return _provider_error_response(exc, include_code=True)

    return EssayResponse(
        enhanced_essay=enhanced,
        source_language=body.source_language,
        target_language=body.target_language,
        essay_type=body.essay_type,
        word_limit=body.word_limit,
        enhanced_at=utcnow(),
    )


@router.post("/mock-evaluation", response_model=MockEvaluationResponse)
async def mock_evaluation(
    body: MockEvaluationRequest,
    user_id: str = Depends(get_current_user_id),
    ai: AIClient = Depends(get_ai_client),
):
    _require(body.exam_type, body.language, body.question_type, body.subject, body.answer_text)
    try:
        evaluation = await evaluate_mock_answer(
            ai,
            body.exam_type,
            body.language,
            body.question_type,
            body.subject,
            body.answer_text,
            word_limit=body.word_limit,
        )
    except AIProviderError as exc:
        return _provider_error_response(exc)

    return MockEvaluationResponse(
        evaluation=evaluation,
        exam_type=body.exam_type,
        language=body.language,
        question_type=body.question_type,
        subject=body.subject,
        word_limit=body.word_limit,
        evaluated_at=utcnow(),
    )


@router.post("/evaluate-mains")
async def mains_evaluation(
    body: MainsEvaluationRequest,
    user_id: str = Depends(get_current_user_id),
    ai: AIClient = Depends(get_ai_client),
):
    """Return the model's JSON evaluation object as-is."""
    _require(body.question, body.answer, detail="Question and answer are required")
    try:
        return await evaluate_mains(ai, body.question, body.answer, body.subject, body.language)
    except InvalidAIFormat as exc:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "AI returned invalid format", "raw": exc.raw},
        )
    except AIProviderError as exc:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": exc.message},
        )
