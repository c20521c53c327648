"""Nanobook - forensic research dossier and illustrated nano-book generator.

Simple CLI for running an investigation and drafting a book.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from nanobook.errors import NanobookError
from nanobook.models.events import AgentState, AgentStatus
from nanobook.models.schemas import GenSettings
from nanobook.services.projects import export_project
from nanobook.services.studio import Studio

STATUS_MARKERS = {
    AgentStatus.PENDING: "[ ]",
    AgentStatus.RUNNING: "[~]",
    AgentStatus.COMPLETED: "[+]",
    AgentStatus.FAILED: "[!]",
}


def print_progress(states: list[AgentState]) -> None:
    line = "  ".join(f"{STATUS_MARKERS[s.status]} {s.name}" for s in states)
    print(f"\r{line}", end="", flush=True)


def build_settings(args: argparse.Namespace) -> GenSettings:
    custom_spec = None
    if args.spec_file:
        custom_spec = Path(args.spec_file).read_text(encoding="utf-8")
    return GenSettings(
        tone=args.tone or "",
        visual_style=args.visual_style or "",
        length_level=args.length,
        image_density=args.images,
        tech_level=args.tech,
        target_word_count=args.word_count,
        case_study_count=args.case_studies,
        custom_spec=custom_spec,
    )


async def run_investigation(topic: str, settings: GenSettings, output: str | None) -> int:
    """Run research and drafting on the given topic."""
    print(f"Investigation topic: {topic}")
    print("-" * 50)

    studio = Studio()
    try:
        project = await studio.start_investigation(topic, settings, on_progress=print_progress)
    except NanobookError as e:
        print(f"\n[!] Error: {e}")
        return 1

    research = project.research
    book = project.branches[0].book
    print("\n\n[*] Research Complete!")
    print(f"   Ethical rating: {research.ethical_rating}/10")
    print(f"   Profit potential: {research.profit_potential}")
    print(f"   Case studies: {len(research.case_studies)}")
    print(f"\n{research.summary}")

    print(f"\n{'=' * 50}")
    print(f"{book.title}: {book.subtitle}")
    print(f"{'=' * 50}")
    for chapter in book.chapters:
        visuals = len(chapter.visuals or ())
        print(f"  {chapter.number}. {chapter.title} ({len(chapter.content.split())} words, {visuals} visuals)")

    if output:
        Path(output).write_text(export_project(project), encoding="utf-8")
        print(f"\n[+] Project exported to {output}")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Nanobook forensic research and drafting tool")
    parser.add_argument("--topic", "-t", required=True, help="Side hustle or business topic to investigate")
    parser.add_argument("--case-studies", type=int, default=None, help="Number of case studies (default: from config)")
    parser.add_argument("--length", type=int, choices=(1, 2, 3), default=2, help="1 condensed, 2 standard, 3 deep")
    parser.add_argument("--images", type=int, choices=(1, 2, 3), default=2, help="Visual density per chapter")
    parser.add_argument("--tech", type=int, choices=(1, 2, 3), default=2, help="1 artistic, 3 technical visuals")
    parser.add_argument("--tone", help="Tone override")
    parser.add_argument("--visual-style", help="Visual style override")
    parser.add_argument("--word-count", type=int, default=None, help="Strict words-per-chapter target")
    parser.add_argument("--spec-file", help="Path to a custom book structure specification")
    parser.add_argument("--output", "-o", help="Write the project export JSON here")

    args = parser.parse_args()

    sys.exit(asyncio.run(run_investigation(args.topic, build_settings(args), args.output)))


if __name__ == "__main__":
    main()
