from __future__ import annotations

from nanobook.agents.author_agent import AuthorAgent
from nanobook.agents.coordinator import ResearchCoordinator
from nanobook.llm_client import LLMClient
from nanobook.models.events import ProgressCallback
from nanobook.models.schemas import GenSettings, Project
from nanobook.services import projects
from nanobook.services.image_service import ImageService
from nanobook.services.projects import CoverSide


class Studio:
    """Investigate a topic, draft branches, and fill image placeholders.

    Holds no project state: every method takes a Project and returns a new one.
    """

    def __init__(
        self,
        llm: LLMClient | None = None,
        *,
        coordinator: ResearchCoordinator | None = None,
        author: AuthorAgent | None = None,
        images: ImageService | None = None,
    ):
        if llm is None and None in (coordinator, author, images):
            llm = LLMClient()
        self.coordinator = coordinator or ResearchCoordinator(llm)
        self.author = author or AuthorAgent(llm)
        self.images = images or ImageService(llm)

    async def start_investigation(
        self,
        topic: str,
        settings: GenSettings,
        on_progress: ProgressCallback | None = None,
    ) -> Project:
        research = await self.coordinator.perform_research(
            topic, settings.case_study_count, on_progress
        )
        book = await self.author.generate_draft(topic, research, settings)
        return projects.create_project(topic, research, settings, book)

    async def create_branch(
        self, project: Project, settings: GenSettings, *, name: str | None = None
    ) -> Project:
        book = await self.author.generate_draft(project.topic, project.research, settings)
        return projects.add_branch(project, settings, book, name=name)

    async def fill_visual(
        self,
        project: Project,
        branch_id: str,
        chapter_index: int,
        visual_index: int,
        *,
        high_res: bool = False,
    ) -> Project:
        branch = projects.get_branch(project, branch_id)
        visual = projects.visual_at(branch.book, chapter_index, visual_index)
        image = await self.images.generate_image(
            visual.description,
            style=branch.settings.visual_style or None,
            high_res=high_res,
            model_hierarchy=branch.settings.image_model_hierarchy,
        )
        book = projects.with_visual_image(branch.book, chapter_index, visual_index, image)
        return projects.replace_branch_book(project, branch_id, book)

    async def edit_visual(
        self,
        project: Project,
        branch_id: str,
        chapter_index: int,
        visual_index: int,
        instruction: str,
    ) -> Project:
        branch = projects.get_branch(project, branch_id)
        visual = projects.visual_at(branch.book, chapter_index, visual_index)
        if not visual.image_url:
            raise ValueError("Visual has no image to edit yet")
        image = await self.images.edit_image(
            visual.image_url,
            instruction,
            model_hierarchy=branch.settings.image_model_hierarchy,
        )
        book = projects.with_visual_image(branch.book, chapter_index, visual_index, image)
        return projects.replace_branch_book(project, branch_id, book)

    async def fill_cover(
        self,
        project: Project,
        branch_id: str,
        side: CoverSide,
        *,
        high_res: bool = False,
    ) -> Project:
        branch = projects.get_branch(project, branch_id)
        cover = branch.book.front_cover if side == "front" else branch.book.back_cover
        if cover is None:
            raise ValueError(f"Book has no {side} cover to fill")
        image = await self.images.generate_image(
            cover.visual_description,
            style=branch.settings.visual_style or None,
            high_res=high_res,
            model_hierarchy=branch.settings.image_model_hierarchy,
        )
        book = projects.with_cover_image(branch.book, side, image)
        return projects.replace_branch_book(project, branch_id, book)
