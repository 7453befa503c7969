"""Journal tools."""

from datetime import UTC, date, datetime

from pydantic import BaseModel, Field

from aurora.services.journal import InMemoryJournalService, JournalEntry, energy_label, mood_label
from aurora.tools.base import ToolDefinition, ToolDomain, ToolResult, ToolSuccess, invalid, not_found, parse_date


class ListEntriesInput(BaseModel):
    days: int = Field(default=7, ge=1, description="Number of days to look back")


class EntryDateInput(BaseModel):
    date: str = Field(..., description="Date in YYYY-MM-DD format")


class SaveEntryInput(BaseModel):
    date: str | None = Field(default=None, description="Date for the entry (default: today)")
    content: str | None = Field(default=None, description="Journal entry content")
    mood: int | None = Field(default=None, ge=1, le=5, description="Mood rating 1-5")
    energy: int | None = Field(default=None, ge=1, le=5, description="Energy level 1-5")


class UpdateEntryInput(BaseModel):
    entry_id: int = Field(..., description="The entry to update")
    content: str | None = Field(default=None, description="New content")
    mood: int | None = Field(default=None, ge=1, le=5, description="New mood 1-5")
    energy: int | None = Field(default=None, ge=1, le=5, description="New energy 1-5")


class EntryIdInput(BaseModel):
    entry_id: int = Field(..., description="The ID of the entry")


def _ratings(entry: JournalEntry) -> dict:
    return {
        "mood": entry.mood,
        "mood_label": mood_label(entry.mood) if entry.mood else None,
        "energy": entry.energy,
        "energy_label": energy_label(entry.energy) if entry.energy else None,
    }


def create_journal_tools(journal: InMemoryJournalService) -> list[ToolDefinition]:
    async def list_journal_entries(params: ListEntriesInput) -> ToolResult:
        entries = await journal.recent_entries(params.days)
        return ToolSuccess(
            {
                "count": len(entries),
                "entries": [
                    {"id": e.id, "date": e.entry_date, **_ratings(e), "has_content": bool(e.content)} for e in entries
                ],
            }
        )

    async def get_journal_entry(params: EntryDateInput) -> ToolResult:
        entry_date = parse_date(params.date)
        if entry_date is None:
            return invalid("Invalid date format. Use YYYY-MM-DD")
        entry = await journal.get_entry_for_date(entry_date)
        if entry is None:
            return ToolSuccess({"message": f"No journal entry for {params.date}"})
        return ToolSuccess({"id": entry.id, "date": entry.entry_date, "content": entry.content, **_ratings(entry)})

    async def create_journal_entry(params: SaveEntryInput) -> ToolResult:
        entry_date: date = parse_date(params.date) or datetime.now(UTC).date()
        entry = await journal.save_entry(entry_date, content=params.content, mood=params.mood, energy=params.energy)
        return ToolSuccess({"id": entry.id, "date": entry.entry_date, "message": "Journal entry saved"})

    async def update_journal_entry(params: UpdateEntryInput) -> ToolResult:
        changes = params.model_dump(exclude={"entry_id"}, exclude_none=True)
        entry = await journal.update_entry(params.entry_id, **changes)
        if entry is None:
            return not_found("Entry", params.entry_id)
        return ToolSuccess({"id": entry.id, "message": "Entry updated"})

    async def delete_journal_entry(params: EntryIdInput) -> ToolResult:
        entry = await journal.delete_entry(params.entry_id)
        if entry is None:
            return not_found("Entry", params.entry_id)
        return ToolSuccess({"message": f"Journal entry for {entry.entry_date} deleted"})

    domain = ToolDomain.JOURNAL
    return [
        ToolDefinition(
            "list_journal_entries", "List recent journal entries", ListEntriesInput, list_journal_entries, domain
        ),
        ToolDefinition(
            "get_journal_entry", "Get a journal entry for a specific date", EntryDateInput, get_journal_entry, domain
        ),
        ToolDefinition(
            "create_journal_entry",
            "Create or update a journal entry for a date. Only the fields given are changed.",
            SaveEntryInput,
            create_journal_entry,
            domain,
            mutates=True,
        ),
        ToolDefinition(
            "update_journal_entry",
            "Update an existing journal entry",
            UpdateEntryInput,
            update_journal_entry,
            domain,
            mutates=True,
        ),
        ToolDefinition(
            "delete_journal_entry",
            "Delete a journal entry. This action requires confirmation.",
            EntryIdInput,
            delete_journal_entry,
            domain,
            mutates=True,
            destructive=True,
        ),
    ]
