"""Extraction batches proposed by the assistant for selective approval."""

from enum import StrEnum

from pydantic import BaseModel, Field


class ExtractionSection(StrEnum):
    """Sections of an extraction that carry their own approval state."""

    JOURNAL = "journal"
    NEW_TASKS = "new_tasks"
    COMPLETE_TASKS = "complete_tasks"


class Extraction(BaseModel):
    """Candidate mutations parsed from an assistant reply.

    Nothing is pre-approved. List approvals are indices into their list; the journal,
    mood and energy values are approved together as one bundle.
    """

    journal: str | None = None
    mood: int | None = None
    energy: int | None = None
    new_tasks: list[str] = Field(default_factory=list)
    complete_tasks: list[str] = Field(default_factory=list)
    topics: list[str] = Field(default_factory=list)
    goals: str | None = None
    decisions: str | None = None

    journal_approved: bool = False
    approved_new_tasks: set[int] = Field(default_factory=set)
    approved_complete_tasks: set[int] = Field(default_factory=set)

    @property
    def has_journal_bundle(self) -> bool:
        return self.journal is not None or self.mood is not None or self.energy is not None

    def is_empty(self) -> bool:
        return not (
            self.has_journal_bundle
            or self.new_tasks
            or self.complete_tasks
            or self.topics
            or self.goals
            or self.decisions
        )

    def toggle(self, section: ExtractionSection, index: int | None = None) -> bool:
        """Flip approval for one item and return its new state.

        Raises:
            IndexError: If the index does not address an item of the section
            ValueError: If the journal bundle is toggled but the extraction has none
        """
        if section == ExtractionSection.JOURNAL:
            if not self.has_journal_bundle:
                raise ValueError("Extraction has no journal, mood or energy to approve")
            self.journal_approved = not self.journal_approved
            return self.journal_approved

        items, approved = self._list_section(section)
        if index is None or not 0 <= index < len(items):
            raise IndexError(f"{section} index {index} out of range (0..{len(items) - 1})")

        if index in approved:
            approved.discard(index)
            return False
        approved.add(index)
        return True

    def approved_items(self, section: ExtractionSection) -> list[str]:
        """Approved items of a list section, in list order."""
        items, approved = self._list_section(section)
        return [item for index, item in enumerate(items) if index in approved]

    def clear_approvals(self) -> None:
        self.journal_approved = False
        self.approved_new_tasks.clear()
        self.approved_complete_tasks.clear()

    def _list_section(self, section: ExtractionSection) -> tuple[list[str], set[int]]:
        if section == ExtractionSection.NEW_TASKS:
            return self.new_tasks, self.approved_new_tasks
        if section == ExtractionSection.COMPLETE_TASKS:
            return self.complete_tasks, self.approved_complete_tasks
        raise ValueError(f"{section} is not a list section")


class ExtractionReport(BaseModel):
    """What processing an approved extraction actually changed."""

    journal_saved: bool = False
    created_tasks: list[str] = Field(default_factory=list)
    completed_tasks: list[str] = Field(default_factory=list)
    unmatched_tasks: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
