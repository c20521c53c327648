"""Tests for the research and book models and the parse-then-validate pipeline."""
import json

import pytest
from pydantic import ValidationError

from nanobook.errors import InvalidDraftStructureError, InvalidResearchStructureError
from nanobook.models.schemas import Book, GenSettings, ResearchData
from nanobook.services.validation import (
    BOOK_RESPONSE_SCHEMA,
    RESEARCH_RESPONSE_SCHEMA,
    Ok,
    ParseFailure,
    ValidationFailure,
    parse_structured,
    require_valid,
)


class TestResearchData:
    @pytest.mark.parametrize("rating", [1, 3, 10, 3.0])
    def test_accepts_rating_in_range(self, make_research, rating):
        research = ResearchData.model_validate(make_research(ethical_rating=rating))
        assert research.ethical_rating == int(rating)

    @pytest.mark.parametrize("rating", [0, 11, -2, 3.5, "high", "7", True, False])
    def test_rejects_rating_out_of_range(self, make_research, rating):
        with pytest.raises(ValidationError):
            ResearchData.model_validate(make_research(ethical_rating=rating))

    @pytest.mark.parametrize(
        "missing", ["marketStats", "hiddenCosts", "caseStudies", "affiliates", "summary"]
    )
    def test_requires_every_section(self, research_payload, missing):
        del research_payload[missing]
        with pytest.raises(ValidationError):
            ResearchData.model_validate(research_payload)

    def test_empty_arrays_are_allowed(self, research_payload):
        research_payload["hiddenCosts"] = []
        research_payload["affiliates"] = []

        research = ResearchData.model_validate(research_payload)

        assert research.hidden_costs == ()
        assert research.affiliates == ()

    def test_rejects_unknown_case_study_type(self, research_payload):
        research_payload["caseStudies"][0]["type"] = "MAYBE"
        with pytest.raises(ValidationError):
            ResearchData.model_validate(research_payload)

    def test_serializes_with_camel_case(self, research_payload):
        research = ResearchData.model_validate(research_payload)
        data = research.to_json_dict()

        assert data["ethicalRating"] == 3
        assert data["caseStudies"][0]["type"] == "WINNER"
        assert "ethical_rating" not in data

    def test_is_immutable(self, research_payload):
        research = ResearchData.model_validate(research_payload)
        with pytest.raises(ValidationError):
            research.summary = "changed"


class TestBook:
    def test_valid_book(self, book_payload):
        book = Book.model_validate(book_payload)

        assert len(book.chapters) == 8
        assert book.front_cover.visual_description
        assert book.chapters[0].visuals[0].image_url is None

    def test_chapters_optional_parts(self, make_book):
        payload = make_book(2)
        del payload["chapters"][0]["visuals"]
        del payload["chapters"][1]["posiBotQuotes"]
        del payload["frontCover"]

        book = Book.model_validate(payload)

        assert book.chapters[0].visuals is None
        assert book.front_cover is None

    def test_requires_a_chapter(self, make_book):
        with pytest.raises(ValidationError):
            Book.model_validate(make_book(0))

    def test_rejects_blank_content(self, book_payload):
        book_payload["chapters"][3]["content"] = "   \n"
        with pytest.raises(ValidationError):
            Book.model_validate(book_payload)

    @pytest.mark.parametrize("numbers", [[1, 1], [2, 1], [1, 3, 2]])
    def test_rejects_unordered_chapter_numbers(self, make_book, numbers):
        payload = make_book(len(numbers))
        for chapter, number in zip(payload["chapters"], numbers):
            chapter["number"] = number
        with pytest.raises(ValidationError):
            Book.model_validate(payload)

    @pytest.mark.parametrize("number", ["1", True])
    def test_rejects_non_numeric_chapter_number(self, make_book, number):
        payload = make_book(1)
        payload["chapters"][0]["number"] = number
        with pytest.raises(ValidationError):
            Book.model_validate(payload)

    def test_allows_gaps_in_numbering(self, make_book):
        payload = make_book(2)
        payload["chapters"][1]["number"] = 5

        assert [c.number for c in Book.model_validate(payload).chapters] == [1, 5]

    def test_rejects_unknown_visual_type(self, book_payload):
        book_payload["chapters"][0]["visuals"][0]["type"] = "GIF"
        with pytest.raises(ValidationError):
            Book.model_validate(book_payload)


class TestGenSettings:
    def test_defaults(self):
        gen = GenSettings()

        assert (gen.length_level, gen.image_density, gen.tech_level) == (2, 2, 2)
        assert gen.custom_spec is None
        assert gen.image_model_hierarchy is None

    def test_accepts_camel_case_and_passes_ranges_through(self):
        gen = GenSettings.model_validate(
            {"lengthLevel": 7, "targetWordCount": 5000, "imageModelHierarchy": ["a", "b"]}
        )

        assert gen.length_level == 7
        assert gen.target_word_count == 5000
        assert gen.image_model_hierarchy == ("a", "b")


class TestParseStructured:
    def test_ok(self, research_payload):
        outcome = parse_structured(json.dumps(research_payload), ResearchData)

        assert isinstance(outcome, Ok)
        assert outcome.value.profit_potential == "Low"

    def test_parse_failure(self):
        outcome = parse_structured("the model refused", ResearchData)

        assert isinstance(outcome, ParseFailure)
        assert outcome.raw_text == "the model refused"

    def test_validation_failure(self, make_research):
        outcome = parse_structured(json.dumps(make_research(ethical_rating=42)), ResearchData)

        assert isinstance(outcome, ValidationFailure)
        assert "ethicalRating" in outcome.message
        assert outcome.details

    def test_string_rating_is_not_coerced(self, make_research):
        outcome = parse_structured(json.dumps(make_research(ethical_rating="7")), ResearchData)

        assert isinstance(outcome, ValidationFailure)
        assert "ethicalRating" in outcome.message

    def test_never_raises_on_non_object(self):
        assert isinstance(parse_structured("[1, 2, 3]", Book), ParseFailure)


class TestRequireValid:
    def test_returns_value(self, book_payload):
        book = Book.model_validate(book_payload)
        assert require_valid(Ok(book), InvalidDraftStructureError, "draft") is book

    def test_raises_callers_error_type(self):
        with pytest.raises(InvalidResearchStructureError, match="Invalid research"):
            require_valid(ParseFailure("no json"), InvalidResearchStructureError, "Invalid research")

    def test_keeps_validation_details(self):
        failure = ValidationFailure("chapters: too short", [{"loc": ("chapters",)}])
        with pytest.raises(InvalidDraftStructureError) as exc_info:
            require_valid(failure, InvalidDraftStructureError, "Invalid draft")

        assert exc_info.value.details == [{"loc": ("chapters",)}]


class TestResponseSchemas:
    def test_research_schema_requires_every_section(self):
        assert set(RESEARCH_RESPONSE_SCHEMA["required"]) == {
            "summary",
            "ethicalRating",
            "profitPotential",
            "marketStats",
            "hiddenCosts",
            "caseStudies",
            "affiliates",
        }
        rating = RESEARCH_RESPONSE_SCHEMA["properties"]["ethicalRating"]
        assert (rating["minimum"], rating["maximum"]) == (1, 10)

    def test_book_schema_matches_book_fields(self):
        chapter = BOOK_RESPONSE_SCHEMA["properties"]["chapters"]["items"]

        assert chapter["required"] == ["number", "title", "content"]
        assert "posiBotQuotes" in chapter["properties"]
        assert set(BOOK_RESPONSE_SCHEMA["required"]) == {"title", "subtitle", "chapters"}
