from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class FrozenModel(BaseModel):
    """Immutable value type serialized with camelCase keys."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _require_number(value: Any) -> Any:
    # Lax mode would turn "7" and true into ints.
    if isinstance(value, (str, bool)):
        raise ValueError(f"expected a number, got {type(value).__name__}")
    return value


# --- Research ---


class CaseStudyType(StrEnum):
    WINNER = "WINNER"
    LOSER = "LOSER"


class AffiliateType(StrEnum):
    PARTICIPANT = "PARTICIPANT"  # earns by doing the hustle
    WRITER = "WRITER"  # earns by promoting it


class Stat(FrozenModel):
    label: str
    value: str
    context: str


class CaseStudy(FrozenModel):
    name: str
    type: CaseStudyType
    background: str
    strategy: str
    outcome: str
    revenue: str


class AffiliateOpportunity(FrozenModel):
    program: str
    potential: str
    type: AffiliateType
    commission: str
    notes: str


class ResearchData(FrozenModel):
    summary: str
    ethical_rating: int = Field(ge=1, le=10)
    profit_potential: str
    market_stats: tuple[Stat, ...]
    hidden_costs: tuple[Stat, ...]
    case_studies: tuple[CaseStudy, ...]
    affiliates: tuple[AffiliateOpportunity, ...]

    @field_validator("ethical_rating", mode="before")
    @classmethod
    def rating_is_number(cls, value: Any) -> Any:
        return _require_number(value)


# --- Book ---


class VisualType(StrEnum):
    HERO = "HERO"
    CHART = "CHART"
    CALLOUT = "CALLOUT"
    PORTRAIT = "PORTRAIT"
    DIAGRAM = "DIAGRAM"


class QuotePosition(StrEnum):
    LEFT = "LEFT"
    RIGHT = "RIGHT"


class VisualElement(FrozenModel):
    type: VisualType
    description: str
    caption: Optional[str] = None
    image_url: Optional[str] = None  # None until an image is generated or uploaded


class Cover(FrozenModel):
    title_text: Optional[str] = None
    subtitle_text: Optional[str] = None
    blurb: Optional[str] = None
    visual_description: str
    image_url: Optional[str] = None


class PosiBotQuote(FrozenModel):
    position: QuotePosition
    text: str


class Chapter(FrozenModel):
    number: int
    title: str
    content: str
    posi_bot_quotes: Optional[tuple[PosiBotQuote, ...]] = None
    visuals: Optional[tuple[VisualElement, ...]] = None

    @field_validator("number", mode="before")
    @classmethod
    def number_is_number(cls, value: Any) -> Any:
        return _require_number(value)

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("chapter content must not be empty")
        return value


class Book(FrozenModel):
    title: str
    subtitle: str
    front_cover: Optional[Cover] = None
    back_cover: Optional[Cover] = None
    chapters: tuple[Chapter, ...] = Field(min_length=1)

    @model_validator(mode="after")
    def chapter_numbers_increase(self) -> "Book":
        numbers = [chapter.number for chapter in self.chapters]
        for previous, current in zip(numbers, numbers[1:]):
            if current <= previous:
                raise ValueError(
                    f"chapter numbers must be unique and increasing, got {numbers}"
                )
        return self


# --- Settings ---


class GenSettings(FrozenModel):
    """User-chosen drafting options.

    Levels are expected in 1..3 and counts in the ranges the caller enforces
    (targetWordCount 100-2000, caseStudyCount 1-50). Values outside those
    ranges are passed through to prompt text rather than rejected.
    """

    tone: str = ""
    visual_style: str = ""
    length_level: int = 2
    image_density: int = 2
    tech_level: int = 2
    target_word_count: Optional[int] = None
    case_study_count: Optional[int] = None
    front_cover_prompt: Optional[str] = None
    back_cover_prompt: Optional[str] = None
    custom_spec: Optional[str] = None
    image_model_hierarchy: Optional[tuple[str, ...]] = None


# --- Projects ---


def _new_id() -> str:
    return uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Branch(FrozenModel):
    id: str = Field(default_factory=_new_id)
    name: str
    timestamp: datetime = Field(default_factory=_utcnow)
    settings: GenSettings
    book: Book


class Project(FrozenModel):
    topic: str
    research: ResearchData
    branches: tuple[Branch, ...] = ()
