"""
app/models.py – Pydantic v2 request / response schemas for the Creative Suite API.
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, EmailStr, Field


# ── Envelope ──────────────────────────────────────────────────────────────────


class ApiResponse(BaseModel):
    """Success envelope shared by every endpoint."""

    success: bool = True
    message: Optional[str] = None
    data: Optional[Any] = None


# ── Auth ──────────────────────────────────────────────────────────────────────


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, description="At least 8 characters.")
    name: str = Field(..., min_length=1, examples=["Ada Lovelace"])


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class UserOut(BaseModel):
    id: str
    email: str
    role: str = "user"
    name: Optional[str] = None


class AuthData(BaseModel):
    user: UserOut
    access_token: str
    refresh_token: Optional[str] = None


# ── User ──────────────────────────────────────────────────────────────────────


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, max_length=200)
    preferences: dict[str, Any] = Field(default_factory=dict)


# ── AI generation ─────────────────────────────────────────────────────────────


class TextGenerateRequest(BaseModel):
    prompt: str = Field(..., min_length=1, examples=["Write a tagline for a coffee shop."])
    max_tokens: int = Field(default=1000, ge=1, le=8192)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)


class TextGenerateData(BaseModel):
    text: str
    prompt_tokens: int
    completion_tokens: int
    model: str


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)
    conversation_id: Optional[str] = None
    system_prompt: Optional[str] = None


class ChatData(BaseModel):
    message: str
    conversation_id: str
    timestamp: str


class ImageGenerateRequest(BaseModel):
    prompt: str = Field(..., min_length=1)
    aspect_ratio: str = Field(default="1:1", examples=["1:1", "16:9"])
    quality: str = Field(default="standard", examples=["standard", "hd"])


class VideoGenerateRequest(BaseModel):
    prompt: str = Field(..., min_length=1)
    duration: int = Field(default=5, ge=1, le=60, description="Seconds.")
    quality: str = Field(default="standard")


class AudioGenerateRequest(BaseModel):
    text: str = Field(..., min_length=1)
    voice: str = Field(default="default")
    speed: float = Field(default=1.0, gt=0, le=4.0)
    language: str = Field(default="en")


class TranscribeRequest(BaseModel):
    filename: str = Field(..., min_length=1, description="Name of a previously uploaded file.")
    language: str = Field(default="auto")


class TranscriptData(BaseModel):
    transcript: str
    language: str
    filename: str


# ── Media ─────────────────────────────────────────────────────────────────────


class FileInfo(BaseModel):
    id: str
    original_name: str
    filename: str
    mimetype: str
    size: int
    uploaded_at: str
    url: str
    uploaded_by: Optional[str] = None


# ── Health ────────────────────────────────────────────────────────────────────


class HealthResponse(BaseModel):
    success: bool = True
    message: str
    timestamp: str
    uptime: float
    environment: str
    version: str


class DetailedHealth(BaseModel):
    message: str
    timestamp: str
    uptime: float
    environment: str
    memory: dict[str, int]
    cpu: dict[str, float]
    python_version: str
    platform: str
    gemini_key_configured: bool
