"""Pydantic schemas for Gemini configuration and SEO generation requests."""

from typing import Literal, Optional

from pydantic import Field

from core.schemas import ApiModel

GeminiModel = Literal[
    "GEMINI_FLASH_LATEST",
    "GEMINI_PRO_LATEST",
    "GEMINI_2_5_PRO",
    "GEMINI_2_5_FLASH",
    "GEMINI_2_5_FLASH_LITE",
    "GEMINI_2_0_FLASH",
    "GEMINI_2_0_FLASH_LITE",
    "GEMINI_1_5_FLASH",
    "GEMINI_1_5_PRO",
    "GEMINI_PRO",
]
Language = Literal["en", "fr", "es", "de", "ar", "nl", "it", "pt"]
Tone = Literal["professional", "casual", "luxury", "technical"]


class GeminiConfigCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    api_key: str = Field(..., min_length=1)
    model: GeminiModel = "GEMINI_2_5_FLASH"
    temperature: float = Field(0.7, ge=0, le=2)
    max_tokens: int = Field(2048, ge=1, le=32000)
    system_instruction: Optional[str] = None
    is_active: bool = False


class GeminiConfigUpdate(ApiModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    api_key: Optional[str] = Field(None, min_length=1)
    model: Optional[GeminiModel] = None
    temperature: Optional[float] = Field(None, ge=0, le=2)
    max_tokens: Optional[int] = Field(None, ge=1, le=32000)
    system_instruction: Optional[str] = None
    is_active: Optional[bool] = None


class ConnectionTest(ApiModel):
    config_id: Optional[str] = None
    api_key: Optional[str] = None
    model: Optional[GeminiModel] = None


class ProductSEORequest(ApiModel):
    product_name: str = Field(..., min_length=1)
    product_description: Optional[str] = None
    category: Optional[str] = None
    keywords: list[str] = Field(default_factory=list)
    target_language: Language = "en"
    tone: Tone = "professional"


class CategorySEORequest(ApiModel):
    category_name: str = Field(..., min_length=1)
    category_description: Optional[str] = None
    product_count: Optional[int] = None
    top_products: list[str] = Field(default_factory=list)
    target_language: Language = "en"


class BatchSEORequest(ApiModel):
    items: list[ProductSEORequest] = Field(..., min_length=1, max_length=50)
    delay_between_ms: int = Field(0, ge=0, le=10000)


class ProductDescriptionRequest(ApiModel):
    product_name: str = Field(..., min_length=1)
    features: list[str] = Field(default_factory=list)
    benefits: list[str] = Field(default_factory=list)
    target_language: Language = "en"
