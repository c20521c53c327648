"""Parse-then-validate pipeline for untrusted model output.

`parse_structured` never raises: it returns `Ok`, `ParseFailure` or
`ValidationFailure`. `require_valid` turns a failure into the caller's
structural error type.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from nanobook.errors import JSONExtractionError, StructureValidationError
from nanobook.services.json_extract import extract_json_object

M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True, slots=True)
class Ok(Generic[M]):
    value: M


@dataclass(frozen=True, slots=True)
class ParseFailure:
    message: str
    raw_text: str = ""


@dataclass(frozen=True, slots=True)
class ValidationFailure:
    message: str
    details: list[dict[str, Any]] = field(default_factory=list)


ParseOutcome = Union[Ok[M], ParseFailure, ValidationFailure]


def _summarize(exc: PydanticValidationError, max_items: int = 5) -> str:
    parts: list[str] = []
    for error in exc.errors()[:max_items]:
        location = ".".join(str(p) for p in error.get("loc", ())) or "<root>"
        parts.append(f"{location}: {error.get('msg', 'invalid')}")
    remaining = exc.error_count() - len(parts)
    if remaining > 0:
        parts.append(f"... and {remaining} more")
    return "; ".join(parts)


def parse_structured(raw_text: str, model: type[M]) -> ParseOutcome[M]:
    try:
        payload = extract_json_object(raw_text)
    except JSONExtractionError as exc:
        return ParseFailure(message=str(exc), raw_text=raw_text)
    try:
        return Ok(model.model_validate(payload))
    except PydanticValidationError as exc:
        return ValidationFailure(
            message=_summarize(exc),
            details=exc.errors(include_url=False, include_context=False, include_input=False),
        )


def require_valid(
    outcome: ParseOutcome[M],
    error_cls: type[StructureValidationError],
    label: str,
) -> M:
    if isinstance(outcome, Ok):
        return outcome.value
    if isinstance(outcome, ParseFailure):
        raise error_cls(f"{label}: {outcome.message}")
    raise error_cls(f"{label}: {outcome.message}", outcome.details)


# --- Structured-output schemas sent with the synthesis and drafting calls ---


def _string(**extra: Any) -> dict[str, Any]:
    return {"type": "string", **extra}


def _array(items: dict[str, Any]) -> dict[str, Any]:
    return {"type": "array", "items": items}


def _object(properties: dict[str, Any], required: list[str] | None = None) -> dict[str, Any]:
    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


_STAT = _object(
    {"label": _string(), "value": _string(), "context": _string()},
    ["label", "value", "context"],
)

RESEARCH_RESPONSE_SCHEMA = _object(
    {
        "summary": _string(),
        "ethicalRating": {"type": "integer", "minimum": 1, "maximum": 10},
        "profitPotential": _string(),
        "marketStats": _array(_STAT),
        "hiddenCosts": _array(_STAT),
        "caseStudies": _array(
            _object(
                {
                    "name": _string(),
                    "type": _string(enum=["WINNER", "LOSER"]),
                    "background": _string(),
                    "strategy": _string(),
                    "outcome": _string(),
                    "revenue": _string(),
                },
                ["name", "type", "background", "strategy", "outcome", "revenue"],
            )
        ),
        "affiliates": _array(
            _object(
                {
                    "program": _string(),
                    "potential": _string(),
                    "type": _string(enum=["PARTICIPANT", "WRITER"]),
                    "commission": _string(),
                    "notes": _string(),
                },
                ["program", "potential", "type", "commission", "notes"],
            )
        ),
    },
    [
        "summary",
        "ethicalRating",
        "profitPotential",
        "marketStats",
        "hiddenCosts",
        "caseStudies",
        "affiliates",
    ],
)

BOOK_RESPONSE_SCHEMA = _object(
    {
        "title": _string(),
        "subtitle": _string(),
        "frontCover": _object(
            {
                "titleText": _string(),
                "subtitleText": _string(),
                "visualDescription": _string(),
            },
            ["visualDescription"],
        ),
        "backCover": _object(
            {"blurb": _string(), "visualDescription": _string()},
            ["visualDescription"],
        ),
        "chapters": _array(
            _object(
                {
                    "number": {"type": "integer"},
                    "title": _string(),
                    "content": _string(),
                    "posiBotQuotes": _array(
                        _object(
                            {"position": _string(enum=["LEFT", "RIGHT"]), "text": _string()},
                            ["position", "text"],
                        )
                    ),
                    "visuals": _array(
                        _object(
                            {
                                "type": _string(
                                    enum=["HERO", "CHART", "CALLOUT", "PORTRAIT", "DIAGRAM"]
                                ),
                                "description": _string(),
                                "caption": _string(),
                            },
                            ["type", "description"],
                        )
                    ),
                },
                ["number", "title", "content"],
            )
        ),
    },
    ["title", "subtitle", "chapters"],
)
