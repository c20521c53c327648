"""Tests for the Studio workflow over fake coordinator, author and images."""
from unittest.mock import AsyncMock, MagicMock

import pytest

from nanobook.errors import AllAgentsFailedError, BranchNotFoundError
from nanobook.models.schemas import Book, GenSettings, ResearchData
from nanobook.services.studio import Studio

from conftest import make_book_payload, make_research_payload

IMAGE = "data:image/png;base64,QUJD"


@pytest.fixture
def research():
    return ResearchData.model_validate(make_research_payload())


@pytest.fixture
def book():
    return Book.model_validate(make_book_payload())


@pytest.fixture
def studio(research, book):
    coordinator = MagicMock()
    coordinator.perform_research = AsyncMock(return_value=research)
    author = MagicMock()
    author.generate_draft = AsyncMock(return_value=book)
    images = MagicMock()
    images.generate_image = AsyncMock(return_value=IMAGE)
    images.edit_image = AsyncMock(return_value="data:image/png;base64,RURJVA==")
    return Studio(coordinator=coordinator, author=author, images=images)


class TestStartInvestigation:
    @pytest.mark.asyncio
    async def test_builds_project(self, studio, research, book):
        progress = MagicMock()
        gen = GenSettings(case_study_count=4)

        project = await studio.start_investigation("Dropshipping", gen, on_progress=progress)

        studio.coordinator.perform_research.assert_awaited_once_with("Dropshipping", 4, progress)
        studio.author.generate_draft.assert_awaited_once_with("Dropshipping", research, gen)
        assert project.topic == "Dropshipping"
        assert project.research == research
        assert [b.name for b in project.branches] == ["Original Draft"]
        assert project.branches[0].book == book

    @pytest.mark.asyncio
    async def test_research_failure_propagates(self, studio):
        studio.coordinator.perform_research.side_effect = AllAgentsFailedError({"Detective Agent": "x"})

        with pytest.raises(AllAgentsFailedError):
            await studio.start_investigation("Dropshipping", GenSettings())

        studio.author.generate_draft.assert_not_awaited()


class TestBranchesAndImages:
    @pytest.mark.asyncio
    async def test_create_branch_reuses_research(self, studio, research):
        project = await studio.start_investigation("Dropshipping", GenSettings())
        gen = GenSettings(tone="Deadpan")

        updated = await studio.create_branch(project, gen)

        studio.author.generate_draft.assert_awaited_with("Dropshipping", research, gen)
        assert studio.coordinator.perform_research.await_count == 1
        assert [b.name for b in updated.branches] == ["Original Draft", "Draft 2"]

    @pytest.mark.asyncio
    async def test_fill_visual_updates_one_branch(self, studio):
        project = await studio.start_investigation(
            "Dropshipping", GenSettings(visual_style="Blueprint", image_model_hierarchy=("A",))
        )
        project = await studio.create_branch(project, GenSettings())
        first, second = project.branches

        updated = await studio.fill_visual(project, first.id, 1, 0, high_res=True)

        studio.images.generate_image.assert_awaited_once_with(
            "Hero for chapter 2", style="Blueprint", high_res=True, model_hierarchy=("A",)
        )
        assert updated.branches[0].book.chapters[1].visuals[0].image_url == IMAGE
        assert updated.branches[1].book.chapters[1].visuals[0].image_url is None
        assert project.branches[0].book.chapters[1].visuals[0].image_url is None

    @pytest.mark.asyncio
    async def test_edit_visual_requires_existing_image(self, studio):
        project = await studio.start_investigation("Dropshipping", GenSettings())
        branch_id = project.branches[0].id

        with pytest.raises(ValueError):
            await studio.edit_visual(project, branch_id, 0, 0, "darker")

        project = await studio.fill_visual(project, branch_id, 0, 0)
        project = await studio.edit_visual(project, branch_id, 0, 0, "darker")

        studio.images.edit_image.assert_awaited_once_with(IMAGE, "darker", model_hierarchy=None)
        assert project.branches[0].book.chapters[0].visuals[0].image_url == "data:image/png;base64,RURJVA=="

    @pytest.mark.asyncio
    async def test_fill_cover(self, studio):
        project = await studio.start_investigation("Dropshipping", GenSettings())
        branch_id = project.branches[0].id

        updated = await studio.fill_cover(project, branch_id, "front")

        studio.images.generate_image.assert_awaited_once_with(
            "A shipping box on fire, yellow and black",
            style=None,
            high_res=False,
            model_hierarchy=None,
        )
        assert updated.branches[0].book.front_cover.image_url == IMAGE
        assert updated.branches[0].book.back_cover.image_url is None

    @pytest.mark.asyncio
    async def test_bad_index_fails_before_generating(self, studio):
        project = await studio.start_investigation("Dropshipping", GenSettings())
        branch_id = project.branches[0].id

        with pytest.raises(IndexError):
            await studio.fill_visual(project, branch_id, -1, 0)
        with pytest.raises(IndexError):
            await studio.edit_visual(project, branch_id, 0, -1, "darker")

        studio.images.generate_image.assert_not_awaited()
        studio.images.edit_image.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_branch(self, studio):
        project = await studio.start_investigation("Dropshipping", GenSettings())

        with pytest.raises(BranchNotFoundError):
            await studio.fill_visual(project, "missing", 0, 0)
