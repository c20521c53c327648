"""Copy-on-write updates for projects, branches and books.

Every helper returns a new value. Models are frozen, so an image fill
rebuilds the path from the visual up to the project and replaces exactly one
branch entry.
"""
from __future__ import annotations

import json
from typing import Any, Literal

from nanobook.errors import BranchNotFoundError
from nanobook.models.schemas import Book, Branch, GenSettings, Project, ResearchData, VisualElement

SCHEMA_VERSION = 1

CoverSide = Literal["front", "back"]


def create_project(
    topic: str,
    research: ResearchData,
    settings: GenSettings,
    book: Book,
    *,
    branch_name: str = "Original Draft",
) -> Project:
    branch = Branch(name=branch_name, settings=settings, book=book.model_copy(deep=True))
    return Project(topic=topic, research=research, branches=(branch,))


def add_branch(
    project: Project,
    settings: GenSettings,
    book: Book,
    *,
    name: str | None = None,
) -> Project:
    branch = Branch(
        name=name or f"Draft {len(project.branches) + 1}",
        settings=settings,
        book=book.model_copy(deep=True),
    )
    return project.model_copy(update={"branches": (*project.branches, branch)})


def get_branch(project: Project, branch_id: str) -> Branch:
    for branch in project.branches:
        if branch.id == branch_id:
            return branch
    raise BranchNotFoundError(branch_id)


def replace_branch_book(project: Project, branch_id: str, book: Book) -> Project:
    get_branch(project, branch_id)
    branches = tuple(
        branch.model_copy(update={"book": book}) if branch.id == branch_id else branch
        for branch in project.branches
    )
    return project.model_copy(update={"branches": branches})


def visual_at(book: Book, chapter_index: int, visual_index: int) -> VisualElement:
    """Look up a placeholder by position. Negative indices are rejected."""
    if not 0 <= chapter_index < len(book.chapters):
        raise IndexError(f"Book has no chapter at index {chapter_index}")
    chapter = book.chapters[chapter_index]
    visuals = chapter.visuals or ()
    if not 0 <= visual_index < len(visuals):
        raise IndexError(
            f"Chapter {chapter.number} has no visual at index {visual_index}"
        )
    return visuals[visual_index]


def with_visual_image(book: Book, chapter_index: int, visual_index: int, image_url: str) -> Book:
    visual_at(book, chapter_index, visual_index)
    chapter = book.chapters[chapter_index]
    visuals = chapter.visuals or ()
    new_visuals = tuple(
        visual.model_copy(update={"image_url": image_url}) if idx == visual_index else visual
        for idx, visual in enumerate(visuals)
    )
    new_chapter = chapter.model_copy(update={"visuals": new_visuals})
    chapters = tuple(
        new_chapter if idx == chapter_index else existing
        for idx, existing in enumerate(book.chapters)
    )
    return book.model_copy(update={"chapters": chapters})


def with_cover_image(book: Book, side: CoverSide, image_url: str) -> Book:
    field_name = "front_cover" if side == "front" else "back_cover"
    cover = getattr(book, field_name)
    if cover is None:
        raise ValueError(f"Book has no {side} cover to fill")
    return book.model_copy(update={field_name: cover.model_copy(update={"image_url": image_url})})


def export_project(project: Project, *, indent: int | None = 2) -> str:
    """Serialize a project for download, tagged with a schema version."""
    payload: dict[str, Any] = {"schemaVersion": SCHEMA_VERSION, **project.to_json_dict()}
    return json.dumps(payload, ensure_ascii=False, indent=indent)


def import_project(text: str) -> Project:
    payload = json.loads(text)
    if not isinstance(payload, dict):
        raise ValueError("Project export must be a JSON object")
    version = payload.pop("schemaVersion", 1)
    if version != SCHEMA_VERSION:
        raise ValueError(f"Unsupported project schema version: {version}")
    return Project.model_validate(payload)
