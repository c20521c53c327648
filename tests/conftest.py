from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock

import pytest

from nanobook.llm_client import GenerationResponse


def make_research_payload(case_study_count: int = 7, ethical_rating: Any = 3) -> dict[str, Any]:
    return {
        "summary": "Most stores never turn a profit.",
        "ethicalRating": ethical_rating,
        "profitPotential": "Low",
        "marketStats": [
            {"label": "Failure rate", "value": "90%", "context": "Within 120 days"},
        ],
        "hiddenCosts": [
            {"label": "Ad spend", "value": "$1,500/mo", "context": "Minimum to get data"},
        ],
        "caseStudies": [
            {
                "name": f"Seller {i}",
                "type": "WINNER" if i == 0 else "LOSER",
                "background": "Side hustler",
                "strategy": "Paid ads",
                "outcome": "Closed the store",
                "revenue": "$2,000",
            }
            for i in range(case_study_count)
        ],
        "affiliates": [
            {
                "program": "Store builder",
                "potential": "High",
                "type": "WRITER",
                "commission": "20% recurring",
                "notes": "Why every guru recommends it",
            }
        ],
    }


def make_book_payload(chapter_count: int = 8) -> dict[str, Any]:
    return {
        "title": "Why Dropshipping?",
        "subtitle": "The math nobody shows you",
        "frontCover": {
            "titleText": "Why Dropshipping?",
            "visualDescription": "A shipping box on fire, yellow and black",
        },
        "backCover": {"blurb": "Read this first.", "visualDescription": "Empty warehouse"},
        "chapters": [
            {
                "number": i + 1,
                "title": f"Chapter {i + 1}",
                "content": f"Body of chapter {i + 1}.",
                "posiBotQuotes": [{"position": "LEFT", "text": "Just manifest the sales!"}],
                "visuals": [
                    {"type": "HERO", "description": f"Hero for chapter {i + 1}"},
                    {"type": "CHART", "description": "Promise vs reality", "caption": "Reality"},
                ],
            }
            for i in range(chapter_count)
        ],
    }


def completion(
    text: str | None = "",
    images: list[dict[str, Any]] | None = None,
    prompt_tokens: int = 3,
    completion_tokens: int = 5,
) -> SimpleNamespace:
    """Shape of an openai chat completion, as far as the client reads it."""
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text, images=images))],
        usage=SimpleNamespace(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
    )


class FakeLLM:
    """Stands in for LLMClient; records every request."""

    def __init__(self, *responses: Any):
        self.generate = AsyncMock(side_effect=list(responses) if responses else None)

    @property
    def requests(self):
        return [c.args[0] for c in self.generate.await_args_list]

    @staticmethod
    def text(payload: Any) -> GenerationResponse:
        body = payload if isinstance(payload, str) else json.dumps(payload)
        return GenerationResponse(text=body)


@pytest.fixture
def research_payload() -> dict[str, Any]:
    return make_research_payload()


@pytest.fixture
def book_payload() -> dict[str, Any]:
    return make_book_payload()


@pytest.fixture
def make_research():
    return make_research_payload


@pytest.fixture
def make_book():
    return make_book_payload


@pytest.fixture
def fake_completion():
    return completion
