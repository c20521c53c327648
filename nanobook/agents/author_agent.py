from __future__ import annotations

import json
import re
import time

from loguru import logger

from nanobook.config import settings
from nanobook.errors import InvalidDraftStructureError
from nanobook.llm_client import GenerationRequest, LLMClient, get_model
from nanobook.models.schemas import Book, GenSettings, ResearchData
from nanobook.services import logger as log_service
from nanobook.services.prompt_store import render_prompt
from nanobook.services.validation import BOOK_RESPONSE_SCHEMA, parse_structured, require_valid

LENGTH_KEYS = {1: "condensed", 2: "standard", 3: "deep"}
IMAGE_KEYS = {1: "minimal", 2: "balanced", 3: "heavy"}
TECH_KEYS = {1: "artistic", 2: "hybrid", 3: "technical"}

_CHAPTER_HEADING_RE = re.compile(r"^#{1,6}\s*Chapter\s+\d+\b", re.IGNORECASE | re.MULTILINE)


def length_instruction(gen: GenSettings) -> str:
    """A word target, when set, replaces the length-level guidance."""
    if gen.target_word_count:
        return render_prompt("author.length.word_target", words=gen.target_word_count)
    return render_prompt(f"author.length.{LENGTH_KEYS.get(gen.length_level, 'standard')}")


def image_instruction(gen: GenSettings) -> str:
    return render_prompt(f"author.images.{IMAGE_KEYS.get(gen.image_density, 'balanced')}")


def tech_instruction(gen: GenSettings) -> str:
    return render_prompt(f"author.tech.{TECH_KEYS.get(gen.tech_level, 'hybrid')}")


def build_constraints(gen: GenSettings) -> str:
    return render_prompt(
        "author.constraints",
        tone=gen.tone or render_prompt("author.defaults.tone"),
        visual_style=gen.visual_style or render_prompt("author.defaults.visual_style"),
        length=length_instruction(gen),
        images=image_instruction(gen),
        tech=tech_instruction(gen),
    )


def default_spec() -> str:
    return render_prompt("author.default_spec")


def spec_chapter_count(spec: str) -> int:
    """Count `# Chapter N` headings in a structural specification."""
    return len(_CHAPTER_HEADING_RE.findall(spec))


def _dump(value) -> str:
    return json.dumps(value, ensure_ascii=False)


class AuthorAgent:
    """Turns validated research plus drafting settings into a Book."""

    name = "Author Agent"

    def __init__(
        self,
        llm: LLMClient,
        *,
        model: str | None = None,
        timeout_ms: int | None = None,
    ):
        self.llm = llm
        self.model = model or get_model(settings.author_model)
        self.timeout_ms = settings.llm_heavy_timeout_ms if timeout_ms is None else int(timeout_ms)

    def build_prompt(self, topic: str, research: ResearchData, gen: GenSettings) -> str:
        return render_prompt(
            "author.draft",
            topic=topic,
            summary=_dump(research.summary),
            market_stats=_dump([s.to_json_dict() for s in research.market_stats]),
            case_studies=_dump([c.to_json_dict() for c in research.case_studies]),
            constraints=build_constraints(gen),
            spec=gen.custom_spec or default_spec(),
            front_cover=gen.front_cover_prompt or render_prompt("author.defaults.front_cover"),
            back_cover=gen.back_cover_prompt or render_prompt("author.defaults.back_cover"),
        )

    async def generate_draft(self, topic: str, research: ResearchData, gen: GenSettings) -> Book:
        t0 = time.monotonic()
        logger.info(f"[{self.name}] Drafting book structure for: {topic}")
        response = await self.llm.generate(
            GenerationRequest(
                model=self.model,
                contents=self.build_prompt(topic, research, gen),
                system_instruction=render_prompt("author.system_prompt"),
                response_schema=BOOK_RESPONSE_SCHEMA,
                schema_name="book",
                max_tokens=32768,
            ),
            caller=self.name,
            timeout_ms=self.timeout_ms,
        )
        book = require_valid(
            parse_structured(response.text, Book),
            InvalidDraftStructureError,
            "Invalid draft structure",
        )

        expected = spec_chapter_count(gen.custom_spec or default_spec())
        if expected and len(book.chapters) != expected:
            logger.warning(
                f"[{self.name}] Draft has {len(book.chapters)} chapters, spec describes {expected}"
            )
        log_service.log_event(
            event_type="draft_complete",
            message=f"Draft complete for {topic}",
            chapters=len(book.chapters),
            runtime_ms=int((time.monotonic() - t0) * 1000),
        )
        return book
