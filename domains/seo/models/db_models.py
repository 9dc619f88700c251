"""SQLAlchemy models for Gemini configurations and usage accounting."""

import uuid

from sqlalchemy import JSON, Boolean, Float, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from core.models.base import Base, RecordMixin, iso


class GeminiConfig(RecordMixin, Base):
    __tablename__ = "gemini_configs"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    api_key: Mapped[str] = mapped_column(String(200), nullable=False)
    model: Mapped[str] = mapped_column(String(50), nullable=False, default="GEMINI_2_5_FLASH")
    temperature: Mapped[float] = mapped_column(Float, nullable=False, default=0.7)
    max_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=2048)
    top_p: Mapped[float] = mapped_column(Float, nullable=False, default=0.9)
    top_k: Mapped[int] = mapped_column(Integer, nullable=False, default=40)
    system_instruction: Mapped[str | None] = mapped_column(Text, nullable=True)
    timeout_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=30000)
    retry_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    enabled_tasks: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        """Never includes the API key."""
        return {
            "id": str(self.id),
            "name": self.name,
            "description": self.description,
            "model": self.model,
            "temperature": self.temperature,
            "maxTokens": self.max_tokens,
            "topP": self.top_p,
            "topK": self.top_k,
            "systemInstruction": self.system_instruction,
            "timeoutMs": self.timeout_ms,
            "retryAttempts": self.retry_attempts,
            "enabledTasks": list(self.enabled_tasks or []),
            "isActive": self.is_active,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


class GeminiUsageLog(RecordMixin, Base):
    __tablename__ = "gemini_usage_logs"

    config_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("gemini_configs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    task_type: Mapped[str] = mapped_column(String(50), nullable=False)
    usage_context: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    total_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cost_usd: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    model_used: Mapped[str] = mapped_column(String(100), nullable=False)
    response_time_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    cache_hit: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "configId": str(self.config_id),
            "taskType": self.task_type,
            "totalTokens": self.total_tokens,
            "costUsd": self.cost_usd,
            "modelUsed": self.model_used,
            "responseTimeMs": self.response_time_ms,
            "success": self.success,
            "cacheHit": self.cache_hit,
            "createdAt": iso(self.created_at),
        }
