"""Parsing and processing of ```extraction blocks found in assistant replies."""

import re

from aurora.models.extraction import Extraction, ExtractionReport, ExtractionSection
from aurora.services.boards import InMemoryBoardService
from aurora.tools.base import ToolSuccess
from aurora.tools.registry import ToolCatalog
from aurora.utils.logging import get_logger

logger = get_logger(__name__)

EXTRACTION_BLOCK = re.compile(r"```extraction[ \t]*\n(.*?)```", re.DOTALL)
SECTION_LINE = re.compile(r"^(JOURNAL|MOOD|ENERGY|NEW_TASKS|TASKS|COMPLETE_TASKS|TOPICS|GOALS|DECISIONS):\s*(.*)$")
LIST_ITEM = re.compile(r"^[-*•]\s+(.+)$")

LIST_SECTIONS = {
    "NEW_TASKS": "new_tasks",
    "TASKS": "new_tasks",
    "COMPLETE_TASKS": "complete_tasks",
}


def _rating(value: str) -> int | None:
    """A 1-5 rating, or None for anything else."""
    try:
        rating = int(value.strip())
    except ValueError:
        return None
    return rating if 1 <= rating <= 5 else None


def _list_item(line: str) -> str | None:
    match = LIST_ITEM.match(line)
    return match.group(1).strip() if match else None


def parse_extraction(text: str | None) -> Extraction | None:
    """Parse the first extraction block in ``text``.

    Returns None when there is no block or the block carries nothing usable.
    """
    if not text:
        return None
    match = EXTRACTION_BLOCK.search(text)
    if match is None:
        return None

    extraction = Extraction()
    current_list: str | None = None

    for raw_line in match.group(1).splitlines():
        line = raw_line.strip()
        if not line:
            continue

        section = SECTION_LINE.match(line)
        if section is None:
            item = _list_item(line)
            if item and current_list is not None:
                getattr(extraction, current_list).append(item)
            continue

        key, value = section.group(1), section.group(2).strip()
        current_list = LIST_SECTIONS.get(key)
        if current_list is not None:
            # "NEW_TASKS: - Buy milk" on one line
            inline = _list_item(value) or value
            if inline:
                getattr(extraction, current_list).append(inline)
        elif key == "JOURNAL":
            extraction.journal = value or None
        elif key == "MOOD":
            extraction.mood = _rating(value)
        elif key == "ENERGY":
            extraction.energy = _rating(value)
        elif key == "TOPICS":
            extraction.topics = [topic.strip() for topic in value.split(",") if topic.strip()]
        elif key == "GOALS":
            extraction.goals = value or None
        elif key == "DECISIONS":
            extraction.decisions = value or None

    if extraction.is_empty():
        logger.debug("Extraction block found but it carries no items")
        return None
    return extraction


def fuzzy_match(title: str, descriptor: str) -> bool:
    """Whether a task title plausibly refers to the same thing as a free-text descriptor."""
    title = title.lower().strip()
    descriptor = descriptor.lower().strip()
    if not title or not descriptor:
        return False
    if descriptor in title or title in descriptor:
        return True

    title_words = set(title.split())
    descriptor_words = set(descriptor.split())
    common = title_words & descriptor_words
    if len(common) >= 2:
        return True
    return len(common) / min(len(title_words), len(descriptor_words)) >= 0.5


class ExtractionProcessor:
    """Applies the approved parts of an extraction through the tool catalog.

    New tasks land in the default column (first column of the first board). Completion
    descriptors complete the first open task whose title fuzzy-matches.
    """

    def __init__(self, catalog: ToolCatalog, boards: InMemoryBoardService):
        self.catalog = catalog
        self.boards = boards

    async def process(self, extraction: Extraction) -> ExtractionReport:
        report = ExtractionReport()

        if extraction.journal_approved and extraction.has_journal_bundle:
            await self._save_journal(extraction, report)

        new_tasks = extraction.approved_items(ExtractionSection.NEW_TASKS)
        if new_tasks:
            await self._create_tasks(new_tasks, report)

        for descriptor in extraction.approved_items(ExtractionSection.COMPLETE_TASKS):
            await self._complete_task(descriptor, report)

        extraction.clear_approvals()
        logger.info(
            f"Processed extraction: journal={report.journal_saved}, created={len(report.created_tasks)}, "
            f"completed={len(report.completed_tasks)}, unmatched={len(report.unmatched_tasks)}"
        )
        return report

    async def _save_journal(self, extraction: Extraction, report: ExtractionReport) -> None:
        fields = {"content": extraction.journal, "mood": extraction.mood, "energy": extraction.energy}
        args = {key: value for key, value in fields.items() if value is not None}
        result = await self.catalog.execute("create_journal_entry", args)
        if isinstance(result, ToolSuccess):
            report.journal_saved = True
        else:
            report.errors.append(f"Journal: {result.error}")

    async def _create_tasks(self, titles: list[str], report: ExtractionReport) -> None:
        column = await self.boards.default_column()
        if column is None:
            report.errors.append("No board column available for new tasks")
            return

        for title in titles:
            result = await self.catalog.execute("create_task", {"column_id": column.id, "title": title})
            if isinstance(result, ToolSuccess):
                report.created_tasks.append(title)
            else:
                report.errors.append(f"Task '{title}': {result.error}")

    async def _complete_task(self, descriptor: str, report: ExtractionReport) -> None:
        open_tasks = await self.boards.list_open_tasks()
        task = next((t for t in open_tasks if fuzzy_match(t.title, descriptor)), None)
        if task is None:
            report.unmatched_tasks.append(descriptor)
            return

        result = await self.catalog.execute("complete_task", {"task_id": task.id})
        if isinstance(result, ToolSuccess):
            report.completed_tasks.append(task.title)
        else:
            report.errors.append(f"Task '{task.title}': {result.error}")
