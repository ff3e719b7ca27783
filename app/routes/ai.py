"""
app/routes/ai.py – generative AI endpoints (authenticated, rate limited).

Text, chat and transcription go to Gemini. Image, video and speech synthesis
have no provider behind them yet and answer with placeholder payloads.
"""

import logging
import uuid
from datetime import datetime, timezone
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.dependencies import get_current_user, get_media_storage, get_usage_tracker
from app.models import (
    ApiResponse,
    AudioGenerateRequest,
    ChatData,
    ChatRequest,
    ImageGenerateRequest,
    TextGenerateData,
    TextGenerateRequest,
    TranscribeRequest,
    TranscriptData,
    VideoGenerateRequest,
)
from app.ratelimit import AI_LIMIT, limiter
from app.services.gemini_client import GeminiClient, get_gemini_client
from app.services.storage import InvalidFilenameError, MediaStorage, guess_mime_type
from app.services.tokens import TokenUser
from app.services.usage import UsageTracker

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/ai",
    tags=["AI"],
    dependencies=[Depends(get_current_user)],
)


def require_gemini_client() -> GeminiClient:
    """Resolve the Gemini client, turning missing configuration into a 503."""
    try:
        return get_gemini_client()
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


def _provider_failure(action: str, exc: Exception, user: TokenUser) -> HTTPException:
    logger.exception("%s failed", action, extra={"user_id": user.id, "error_type": type(exc).__name__})
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"{action} failed. Please retry.",
    )


# ── Gemini-backed ─────────────────────────────────────────────────────────────


@router.post("/text/generate", response_model=ApiResponse, summary="Generate text from a prompt")
@limiter.limit(AI_LIMIT)
async def generate_text(
    request: Request,
    payload: TextGenerateRequest,
    user: TokenUser = Depends(get_current_user),
    client: GeminiClient = Depends(require_gemini_client),
    usage: UsageTracker = Depends(get_usage_tracker),
) -> ApiResponse:
    logger.info(
        "Text generation request",
        extra={
            "user_id": user.id,
            "prompt_length": len(payload.prompt),
            "max_tokens": payload.max_tokens,
            "temperature": payload.temperature,
        },
    )
    try:
        result = client.generate_text(
            payload.prompt,
            temperature=payload.temperature,
            max_output_tokens=payload.max_tokens,
        )
    except Exception as exc:
        raise _provider_failure("Text generation", exc, user) from exc

    text = result["text"]
    usage.record(user.id, "text_requests")
    usage.record(user.id, "text_tokens", result.get("tokens_used") or len(payload.prompt) + len(text))

    # Character counts stand in for tokens; the SDK only reports a combined total.
    data = TextGenerateData(
        text=text,
        prompt_tokens=len(payload.prompt),
        completion_tokens=len(text),
        model=result["model"],
    )
    return ApiResponse(data=data.model_dump())


@router.post("/chat", response_model=ApiResponse, summary="Single-turn chat message")
@limiter.limit(AI_LIMIT)
async def chat(
    request: Request,
    payload: ChatRequest,
    user: TokenUser = Depends(get_current_user),
    client: GeminiClient = Depends(require_gemini_client),
    usage: UsageTracker = Depends(get_usage_tracker),
) -> ApiResponse:
    logger.info(
        "Chat request",
        extra={
            "user_id": user.id,
            "message_length": len(payload.message),
            "conversation_id": payload.conversation_id,
        },
    )
    try:
        result = client.generate_text(payload.message, system_instruction=payload.system_prompt)
    except Exception as exc:
        raise _provider_failure("Chat request", exc, user) from exc

    usage.record(user.id, "text_requests")
    usage.record(user.id, "text_tokens", result.get("tokens_used") or 0)

    data = ChatData(
        message=result["text"],
        conversation_id=payload.conversation_id or f"conv_{uuid.uuid4().hex[:12]}",
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
    return ApiResponse(data=data.model_dump())


@router.post("/audio/transcribe", response_model=ApiResponse, summary="Transcribe an uploaded audio file")
@limiter.limit(AI_LIMIT)
async def transcribe_audio(
    request: Request,
    payload: TranscribeRequest,
    user: TokenUser = Depends(get_current_user),
    client: GeminiClient = Depends(require_gemini_client),
    storage: MediaStorage = Depends(get_media_storage),
    usage: UsageTracker = Depends(get_usage_tracker),
) -> ApiResponse:
    try:
        audio = storage.read(payload.filename)
    except InvalidFilenameError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except FileNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="The requested file does not exist",
        ) from exc

    mime_type = guess_mime_type(payload.filename)
    logger.info(
        "Audio transcription request",
        extra={"user_id": user.id, "audio_filename": payload.filename, "mime_type": mime_type},
    )
    try:
        result = client.transcribe_audio(audio, mime_type)
    except Exception as exc:
        raise _provider_failure("Audio transcription", exc, user) from exc

    usage.record(user.id, "transcriptions")
    data = TranscriptData(
        transcript=result["text"].strip(),
        language=payload.language,
        filename=payload.filename,
    )
    return ApiResponse(data=data.model_dump())


# ── Placeholders ──────────────────────────────────────────────────────────────


@router.post("/image/generate", response_model=ApiResponse, summary="Image generation (placeholder)")
@limiter.limit(AI_LIMIT)
async def generate_image(
    request: Request,
    payload: ImageGenerateRequest,
    user: TokenUser = Depends(get_current_user),
    usage: UsageTracker = Depends(get_usage_tracker),
) -> ApiResponse:
    logger.info(
        "Image generation request",
        extra={"user_id": user.id, "aspect_ratio": payload.aspect_ratio, "quality": payload.quality},
    )
    usage.record(user.id, "images")
    return ApiResponse(
        message="Image generation feature coming soon",
        data={
            "prompt": payload.prompt,
            "aspect_ratio": payload.aspect_ratio,
            "quality": payload.quality,
            "placeholder": f"https://via.placeholder.com/512x512.png?text={quote(payload.prompt[:50])}",
        },
    )


@router.post("/video/generate", response_model=ApiResponse, summary="Video generation (placeholder)")
@limiter.limit(AI_LIMIT)
async def generate_video(
    request: Request,
    payload: VideoGenerateRequest,
    user: TokenUser = Depends(get_current_user),
    usage: UsageTracker = Depends(get_usage_tracker),
) -> ApiResponse:
    logger.info(
        "Video generation request",
        extra={"user_id": user.id, "duration": payload.duration, "quality": payload.quality},
    )
    usage.record(user.id, "videos")
    return ApiResponse(
        message="Video generation feature coming soon",
        data={
            "prompt": payload.prompt,
            "duration": payload.duration,
            "quality": payload.quality,
            "placeholder": "Video generation will be available soon",
        },
    )


@router.post("/audio/generate", response_model=ApiResponse, summary="Speech synthesis (placeholder)")
@limiter.limit(AI_LIMIT)
async def generate_audio(
    request: Request,
    payload: AudioGenerateRequest,
    user: TokenUser = Depends(get_current_user),
    usage: UsageTracker = Depends(get_usage_tracker),
) -> ApiResponse:
    logger.info(
        "Audio generation request",
        extra={"user_id": user.id, "text_length": len(payload.text), "voice": payload.voice},
    )
    usage.record(user.id, "audio_requests")
    return ApiResponse(
        message="Audio generation feature coming soon",
        data={
            "text": payload.text,
            "voice": payload.voice,
            "speed": payload.speed,
            "language": payload.language,
            "placeholder": "Audio generation will be available soon",
        },
    )
