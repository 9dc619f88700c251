"""
Gemini SEO helper.

Wraps the Gemini ``generateContent`` REST endpoint with:
- an in-process response cache keyed on (prompt, model, temperature)
- retries with exponential backoff through a circuit breaker
- error classification into GeminiAPIError codes
- per-call token and cost accounting

Generators (product SEO, category SEO, batch, description) never raise
for a failed generation; they return ``{"success": False, "error": ...}``.
"""
from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import math
import os
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import httpx
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import NotFoundError, ValidationFailed
from core.resilience.circuit_breaker import CircuitBreaker, CircuitOpenError
from domains.seo.models.db_models import GeminiConfig, GeminiUsageLog
from patterns.domain_config import config as store_config
from patterns.repository import BaseRepository, as_uuid

logger = logging.getLogger(__name__)

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"

MODEL_NAME_MAP = {
    "GEMINI_FLASH_LATEST": "gemini-flash-latest",
    "GEMINI_PRO_LATEST": "gemini-pro-latest",
    "GEMINI_2_5_PRO": "gemini-2.5-pro",
    "GEMINI_2_5_FLASH": "gemini-2.5-flash",
    "GEMINI_2_5_FLASH_LITE": "gemini-2.5-flash-lite",
    "GEMINI_2_0_FLASH": "gemini-2.0-flash",
    "GEMINI_2_0_FLASH_LITE": "gemini-2.0-flash-lite",
    "GEMINI_1_5_FLASH": "gemini-1.5-flash",
    "GEMINI_1_5_PRO": "gemini-1.5-pro",
    "GEMINI_PRO": "gemini-pro",
}

# USD per 1k tokens
COST_PER_1K_TOKENS = {
    "GEMINI_FLASH_LATEST": 0.000075,
    "GEMINI_2_5_FLASH": 0.000075,
    "GEMINI_1_5_FLASH": 0.000075,
    "GEMINI_2_5_PRO": 0.0035,
    "GEMINI_1_5_PRO": 0.0035,
    "GEMINI_PRO": 0.0025,
}
DEFAULT_COST_PER_1K_TOKENS = 0.001

LANGUAGE_NAMES = {
    "en": "English",
    "fr": "French",
    "es": "Spanish",
    "de": "German",
    "ar": "Arabic",
    "nl": "Dutch",
    "it": "Italian",
    "pt": "Portuguese",
}

DEFAULT_TASKS = ["PRODUCT_SEO", "PRODUCT_DESCRIPTION", "CATEGORY_SEO"]

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


class GeminiAPIError(Exception):
    """A failed Gemini call, classified by ``code``."""

    TIMEOUT = "TIMEOUT"
    INVALID_API_KEY = "INVALID_API_KEY"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    GENERATION_ERROR = "GENERATION_ERROR"

    def __init__(self, message: str, code: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


# ---------------------------------------------------------------------------
# Resolved configuration
# ---------------------------------------------------------------------------

@dataclass
class GeminiSettings:
    """Everything one generation needs. ``id`` is set for stored configs."""

    api_key: str
    name: str = "Environment Config"
    model: str = store_config.gemini.model
    temperature: float = store_config.gemini.temperature
    max_tokens: int = store_config.gemini.max_tokens
    top_p: float = store_config.gemini.top_p
    top_k: int = store_config.gemini.top_k
    system_instruction: Optional[str] = None
    timeout_ms: int = store_config.gemini.timeout_ms
    retry_attempts: int = store_config.gemini.retry_attempts
    enabled_tasks: list[str] = field(default_factory=lambda: list(DEFAULT_TASKS))
    id: Optional[str] = None

    @classmethod
    def from_record(cls, record: GeminiConfig) -> "GeminiSettings":
        return cls(
            id=str(record.id),
            name=record.name,
            api_key=record.api_key,
            model=record.model,
            temperature=record.temperature,
            max_tokens=record.max_tokens,
            top_p=record.top_p,
            top_k=record.top_k,
            system_instruction=record.system_instruction,
            timeout_ms=record.timeout_ms,
            retry_attempts=record.retry_attempts,
            enabled_tasks=list(record.enabled_tasks or []),
        )

    @classmethod
    def from_env(cls) -> Optional["GeminiSettings"]:
        """GEMINI_API_KEY (plus optional GEMINI_MODEL, GEMINI_TEMPERATURE,
        GEMINI_MAX_TOKENS), or None when no key is set."""
        api_key = os.getenv("GEMINI_API_KEY")
        if not api_key:
            return None
        return cls(
            api_key=api_key,
            model=os.getenv("GEMINI_MODEL") or store_config.gemini.model,
            temperature=float(os.getenv("GEMINI_TEMPERATURE") or store_config.gemini.temperature),
            max_tokens=int(os.getenv("GEMINI_MAX_TOKENS") or store_config.gemini.max_tokens),
        )


def model_name(model: str) -> str:
    return MODEL_NAME_MAP.get(model) or model.lower().replace("_", "-")


def calculate_cost(tokens: int, model: str) -> float:
    rate = COST_PER_1K_TOKENS.get(model, DEFAULT_COST_PER_1K_TOKENS)
    return round(tokens * rate / 1000, 6)


def parse_json_reply(text: str) -> dict:
    """Parse a model reply that should be JSON, tolerating markdown fences."""
    return json.loads(_FENCE.sub("", text.strip()))


def _retryable(error: Exception) -> bool:
    return isinstance(error, GeminiAPIError) and error.code in (
        GeminiAPIError.TIMEOUT,
        GeminiAPIError.GENERATION_ERROR,
    )


@dataclass
class _CacheEntry:
    text: str
    tokens_used: int
    expires_at: datetime


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class GeminiService:
    """Process-wide Gemini client. Use the module-level ``gemini_service``."""

    def __init__(
        self,
        base_url: str = GEMINI_API_BASE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache_ttl_seconds: int = store_config.gemini.cache_ttl_seconds,
        cache_max_entries: int = store_config.gemini.cache_max_entries,
        backoff_base: float = 1.0,
    ):
        self.base_url = base_url
        self.transport = transport
        self.cache_ttl = timedelta(seconds=cache_ttl_seconds)
        self.cache_max_entries = cache_max_entries
        self.breaker = CircuitBreaker(backoff_base=backoff_base)
        self._cache: dict[str, _CacheEntry] = {}

    # -- cache -------------------------------------------------------------

    @staticmethod
    def request_hash(prompt: str, settings: GeminiSettings) -> str:
        data = json.dumps(
            {"prompt": prompt, "model": settings.model, "temperature": settings.temperature},
        )
        return hashlib.md5(data.encode()).hexdigest()

    def _clean_expired_cache(self) -> None:
        now = datetime.now(timezone.utc)
        for key in [k for k, entry in self._cache.items() if entry.expires_at <= now]:
            del self._cache[key]

    def clear_cache(self) -> None:
        self._cache.clear()

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    # -- transport ---------------------------------------------------------

    async def _post(self, settings: GeminiSettings, full_prompt: str, overrides: dict) -> dict:
        url = f"{self.base_url}/models/{model_name(settings.model)}:generateContent"
        body = {
            "contents": [{"role": "user", "parts": [{"text": full_prompt}]}],
            "generationConfig": {
                "temperature": overrides.get("temperature", settings.temperature),
                "maxOutputTokens": overrides.get("max_tokens", settings.max_tokens),
                "topP": overrides.get("top_p", settings.top_p),
                "topK": overrides.get("top_k", settings.top_k),
            },
        }
        try:
            async with httpx.AsyncClient(
                transport=self.transport,
                timeout=settings.timeout_ms / 1000,
            ) as client:
                response = await client.post(
                    url, json=body, headers={"x-goog-api-key": settings.api_key}
                )
        except httpx.TimeoutException:
            raise GeminiAPIError("Request timeout", GeminiAPIError.TIMEOUT) from None
        except httpx.HTTPError as exc:
            raise GeminiAPIError(
                "Failed to generate response",
                GeminiAPIError.GENERATION_ERROR,
                {"originalError": str(exc)},
            ) from exc

        if response.status_code >= 400:
            raise self._classify(response)
        return response.json()

    @staticmethod
    def _classify(response: httpx.Response) -> GeminiAPIError:
        text = response.text
        if response.status_code in (401, 403) or "API_KEY" in text:
            return GeminiAPIError("Invalid API key", GeminiAPIError.INVALID_API_KEY)
        if response.status_code == 429 or "QUOTA_EXCEEDED" in text or "RESOURCE_EXHAUSTED" in text:
            return GeminiAPIError("API quota exceeded", GeminiAPIError.QUOTA_EXCEEDED)
        return GeminiAPIError(
            "Failed to generate response",
            GeminiAPIError.GENERATION_ERROR,
            {"originalError": text[:500], "status": response.status_code},
        )

    @staticmethod
    def _reply_text(payload: dict) -> str:
        try:
            parts = payload["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError):
            raise GeminiAPIError(
                "Failed to generate response",
                GeminiAPIError.GENERATION_ERROR,
                {"originalError": "Response had no candidates"},
            ) from None
        return "".join(part.get("text", "") for part in parts)

    # -- generation --------------------------------------------------------

    async def generate_content(
        self,
        settings: GeminiSettings,
        prompt: str,
        system_instruction: Optional[str] = None,
        use_cache: bool = True,
        overrides: Optional[dict] = None,
        use_breaker: bool = True,
    ) -> dict[str, Any]:
        """Generate text for ``prompt``.

        Returns ``{"text", "metadata": {cached, responseTime, tokensUsed,
        model}}``. Raises GeminiAPIError once retries are exhausted.
        With ``use_breaker=False`` the call retries on its own breaker and
        never trips the shared one.
        """
        started = time.monotonic()
        request_hash = self.request_hash(prompt, settings)

        if use_cache:
            entry = self._cache.get(request_hash)
            if entry and entry.expires_at > datetime.now(timezone.utc):
                return {
                    "text": entry.text,
                    "metadata": {
                        "cached": True,
                        "responseTime": int((time.monotonic() - started) * 1000),
                        "tokensUsed": entry.tokens_used,
                        "model": settings.model,
                    },
                }

        instruction = system_instruction or settings.system_instruction
        full_prompt = f"{instruction}\n\n{prompt}" if instruction else prompt

        breaker = self.breaker if use_breaker else CircuitBreaker(backoff_base=self.breaker.backoff_base)
        try:
            payload = await breaker.call(
                self._post,
                settings,
                full_prompt,
                overrides or {},
                max_retries=max(settings.retry_attempts - 1, 0),
                retry_if=_retryable,
            )
        except CircuitOpenError as exc:
            raise GeminiAPIError(str(exc), GeminiAPIError.GENERATION_ERROR) from exc
        text = self._reply_text(payload)
        usage = payload.get("usageMetadata") or {}
        tokens_used = usage.get("totalTokenCount") or math.ceil((len(full_prompt) + len(text)) / 4)

        if use_cache:
            self._cache[request_hash] = _CacheEntry(
                text=text,
                tokens_used=tokens_used,
                expires_at=datetime.now(timezone.utc) + self.cache_ttl,
            )
            if len(self._cache) > self.cache_max_entries:
                self._clean_expired_cache()

        return {
            "text": text,
            "metadata": {
                "cached": False,
                "responseTime": int((time.monotonic() - started) * 1000),
                "tokensUsed": tokens_used,
                "model": settings.model,
            },
        }

    async def generate_product_seo(self, settings: GeminiSettings, request: dict) -> dict:
        started = time.monotonic()
        language = LANGUAGE_NAMES.get(request.get("target_language") or "en", "English")
        tone = request.get("tone") or "professional"
        system_instruction = (
            "You are an SEO expert specializing in e-commerce product optimization.\n"
            "Generate compelling, search-engine-optimized titles and descriptions that drive conversions.\n"
            "Always respond with valid JSON only, no additional text."
        )
        lines = [
            "Generate an SEO-optimized title and meta description for this product:",
            "",
            f"Product Name: {request['product_name']}",
        ]
        if request.get("product_description"):
            lines.append(f"Description: {request['product_description']}")
        if request.get("category"):
            lines.append(f"Category: {request['category']}")
        if request.get("keywords"):
            lines.append(f"Target Keywords: {', '.join(request['keywords'])}")
        lines += [
            "",
            "Requirements:",
            f"- Write in {language}",
            f"- Use a {tone} tone",
            "- SEO Title: max 60 characters, include primary keyword naturally",
            "- SEO Description: max 160 characters, compelling and action-oriented",
            "- Include 3-5 relevant keywords",
            "",
            "Respond ONLY with this JSON format:",
            '{"seoTitle": "...", "seoDescription": "...", "keywords": ["...", "..."]}',
        ]

        try:
            result = await self.generate_content(
                settings,
                "\n".join(lines),
                system_instruction=system_instruction,
                overrides={"temperature": 0.7},
            )
            parsed = parse_json_reply(result["text"])
        except (GeminiAPIError, ValueError) as exc:
            logger.error("Product SEO generation failed: %s", exc)
            return {"success": False, "error": str(exc) or "Failed to generate product SEO"}

        return {
            "success": True,
            "seoTitle": parsed.get("seoTitle"),
            "seoDescription": parsed.get("seoDescription"),
            "keywords": parsed.get("keywords") or [],
            "metadata": {
                **result["metadata"],
                "responseTime": int((time.monotonic() - started) * 1000),
            },
        }

    async def generate_category_seo(self, settings: GeminiSettings, request: dict) -> dict:
        language = LANGUAGE_NAMES.get(request.get("target_language") or "en", "English")
        system_instruction = (
            "You are an SEO expert specializing in e-commerce category pages.\n"
            "Create SEO content that helps category pages rank well and guide users.\n"
            "Always respond with valid JSON only."
        )
        lines = [
            "Generate SEO title and description for this product category:",
            "",
            f"Category: {request['category_name']}",
        ]
        if request.get("category_description"):
            lines.append(f"Description: {request['category_description']}")
        if request.get("product_count"):
            lines.append(f"Number of Products: {request['product_count']}")
        if request.get("top_products"):
            lines.append(f"Featured Products: {', '.join(request['top_products'])}")
        lines += [
            "",
            "Requirements:",
            f"- Write in {language}",
            "- SEO Title: max 60 characters, category-focused",
            "- SEO Description: max 160 characters, highlight category value",
            "- Include 3-5 category-relevant keywords",
            "",
            "Respond ONLY with this JSON format:",
            '{"seoTitle": "...", "seoDescription": "...", "keywords": ["...", "..."]}',
        ]

        try:
            result = await self.generate_content(
                settings, "\n".join(lines), system_instruction=system_instruction
            )
            parsed = parse_json_reply(result["text"])
        except (GeminiAPIError, ValueError) as exc:
            logger.error("Category SEO generation failed: %s", exc)
            return {"success": False, "error": str(exc) or "Failed to generate category SEO"}

        return {
            "success": True,
            "seoTitle": parsed.get("seoTitle"),
            "seoDescription": parsed.get("seoDescription"),
            "keywords": parsed.get("keywords") or [],
            "metadata": result["metadata"],
        }

    async def generate_batch_product_seo(
        self,
        settings: GeminiSettings,
        items: list[dict],
        delay_between_ms: int = 0,
    ) -> dict:
        results = []
        for index, item in enumerate(items):
            results.append(await self.generate_product_seo(settings, item))
            if delay_between_ms and index < len(items) - 1:
                await asyncio.sleep(delay_between_ms / 1000)

        success_count = sum(1 for r in results if r["success"])
        failure_count = len(results) - success_count
        return {
            "success": failure_count == 0,
            "results": results,
            "successCount": success_count,
            "failureCount": failure_count,
        }

    async def generate_product_description(
        self,
        settings: GeminiSettings,
        product_name: str,
        features: list[str],
        benefits: list[str],
        target_language: str = "en",
    ) -> str:
        language = LANGUAGE_NAMES.get(target_language, "English")
        system_instruction = (
            "You are a professional e-commerce copywriter.\n"
            "Write compelling product descriptions that convert browsers into buyers.\n"
            "Focus on benefits and create emotional connection with the reader."
        )
        prompt = "\n".join([
            "Write a compelling product description for:",
            "",
            f"Product: {product_name}",
            f"Features: {', '.join(features)}",
            f"Benefits: {', '.join(benefits)}",
            "",
            "Requirements:",
            f"- Write in {language}",
            "- 150-250 words",
            "- Highlight key benefits",
            "- Include call-to-action",
            "- Use sensory language where appropriate",
        ])
        result = await self.generate_content(settings, prompt, system_instruction=system_instruction)
        return result["text"]

    async def test_connection(self, settings: GeminiSettings) -> dict:
        started = time.monotonic()
        try:
            await self.generate_content(
                settings,
                'Say "Connection successful" in exactly those words.',
                use_cache=False,
                use_breaker=False,
            )
        except GeminiAPIError as exc:
            return {
                "success": False,
                "error": exc.message,
                "responseTime": int((time.monotonic() - started) * 1000),
            }
        return {"success": True, "responseTime": int((time.monotonic() - started) * 1000)}


gemini_service = GeminiService()


# ---------------------------------------------------------------------------
# Stored configurations
# ---------------------------------------------------------------------------

class GeminiConfigRepository(BaseRepository[GeminiConfig]):
    model = GeminiConfig

    async def list_with_usage(self) -> list[tuple[GeminiConfig, int]]:
        usage = (
            select(GeminiUsageLog.config_id, func.count().label("uses"))
            .group_by(GeminiUsageLog.config_id)
            .subquery()
        )
        result = await self.session.execute(
            select(GeminiConfig, func.coalesce(usage.c.uses, 0))
            .outerjoin(usage, usage.c.config_id == GeminiConfig.id)
            .order_by(GeminiConfig.created_at.desc())
        )
        return [(row[0], row[1]) for row in result.all()]

    async def active(self) -> Optional[GeminiConfig]:
        result = await self.session.execute(
            select(GeminiConfig)
            .where(GeminiConfig.is_active.is_(True))
            .order_by(GeminiConfig.updated_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def deactivate_others(self, keep_id=None) -> None:
        stmt = update(GeminiConfig).where(GeminiConfig.is_active.is_(True))
        if keep_id is not None:
            stmt = stmt.where(GeminiConfig.id != keep_id)
        await self.session.execute(stmt.values(is_active=False))


async def list_configs(session: AsyncSession) -> list[dict]:
    rows = await GeminiConfigRepository(session).list_with_usage()
    return [{**record.to_dict(), "usageCount": uses} for record, uses in rows]


async def get_config(session: AsyncSession, config_id: str) -> GeminiConfig:
    record = await GeminiConfigRepository(session).get(config_id)
    if record is None:
        raise NotFoundError("Config not found")
    return record


async def create_config(session: AsyncSession, data: dict) -> GeminiConfig:
    """Store a configuration. Activating one deactivates all others."""
    repo = GeminiConfigRepository(session)
    if data.get("is_active"):
        await repo.deactivate_others()
    data.setdefault("enabled_tasks", list(DEFAULT_TASKS))
    record = await repo.create(data)
    logger.info("Created Gemini config %s (%s)", record.name, record.model)
    return record


async def update_config(session: AsyncSession, config_id: str, data: dict) -> GeminiConfig:
    repo = GeminiConfigRepository(session)
    record = await get_config(session, config_id)
    changes = {k: v for k, v in data.items() if v is not None or k in ("description", "system_instruction")}
    if changes.get("is_active"):
        await repo.deactivate_others(keep_id=record.id)
    return await repo.update(record, changes)


async def delete_config(session: AsyncSession, config_id: str) -> None:
    record = await get_config(session, config_id)
    await GeminiConfigRepository(session).delete(record)


async def resolve_settings(session: AsyncSession) -> GeminiSettings:
    """The active stored config, else GEMINI_API_KEY from the environment."""
    record = await GeminiConfigRepository(session).active()
    if record is not None:
        return GeminiSettings.from_record(record)
    settings = GeminiSettings.from_env()
    if settings is None:
        raise ValidationFailed(
            "No Gemini configuration found. Set GEMINI_API_KEY in environment "
            "or create a config in database."
        )
    return settings


async def test_settings(session: AsyncSession, data: dict) -> dict:
    """Test a stored config by id, or an unsaved API key."""
    if data.get("config_id"):
        settings = GeminiSettings.from_record(await get_config(session, data["config_id"]))
        settings.retry_attempts = 1
    elif data.get("api_key"):
        settings = GeminiSettings(
            api_key=data["api_key"],
            name="Test Config",
            model=data.get("model") or store_config.gemini.model,
            max_tokens=256,
            timeout_ms=15000,
            retry_attempts=1,
        )
    else:
        raise ValidationFailed("Either configId or apiKey is required")
    return await gemini_service.test_connection(settings)


async def log_usage(session: AsyncSession, settings: GeminiSettings, task_type: str, context: str, result: dict) -> None:
    """Record a successful generation against its stored config.

    Environment configs have no row to log against. A failed insert is
    logged and otherwise ignored.
    """
    if not settings.id:
        return
    metadata = result.get("metadata") or {}
    tokens = metadata.get("tokensUsed") or 0
    try:
        async with session.begin_nested():
            session.add(GeminiUsageLog(
                config_id=as_uuid(settings.id),
                task_type=task_type,
                usage_context={"context": context},
                total_tokens=tokens,
                cost_usd=calculate_cost(tokens, settings.model),
                model_used=settings.model,
                response_time_ms=metadata.get("responseTime") or 0,
                success=True,
                cache_hit=bool(metadata.get("cached")),
            ))
    except Exception:
        logger.exception("Failed to log Gemini usage for config %s", settings.id)
