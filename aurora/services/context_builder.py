"""System prompt with a live snapshot of the user's productivity data."""

from datetime import UTC, datetime
from textwrap import dedent

from aurora.services.domains import DomainServices
from aurora.services.journal import energy_label, mood_label
from aurora.tools.finance import money

CAPABILITIES = """## Your Capabilities

You can help the user with:

1. **Kanban Boards**: Create, view, and manage boards, columns, and tasks. Move tasks between columns, set priorities and due dates, mark tasks complete.
2. **Goals**: Create and track hierarchical goals across timeframes (daily to multi-year). Update progress and manage sub-goals.
3. **Habits**: Create and manage daily habits, toggle completions, view streaks and completion rates.
4. **Journal**: Create and edit journal entries with mood and energy tracking. View past entries.
5. **Finance**: Record income and expenses, categorize transactions, view summaries and spending patterns.
6. **Calendar**: Create, view, and manage calendar events.
7. **Analytics**: Analyze trends across all areas, generate reports, and provide insights."""

GUIDELINES = """## Guidelines

1. **Be Proactive**: Offer relevant suggestions based on the user's data. Mention overdue tasks, breaking streaks, or budget concerns when you notice them.
2. **Be Concise**: Provide clear, actionable responses. Use bullet points for multiple items.
3. **Explain Destructive Actions**: Say exactly what will be deleted before requesting a delete tool.
4. **Use Natural Language**: Show dates, amounts, and statuses in friendly language.
5. **Cross-Reference Data**: Connect insights across domains when relevant.

## Important

- **Use only ONE tool at a time.** Wait for the result before using another tool. Never call multiple tools in a single response.
- Every tool that creates, updates, or deletes data is shown to the user for confirmation before it runs. If the user declines, do not retry the same action unprompted.
- When creating items, confirm what you created.
- If asked about something that doesn't exist, say so clearly.
- If a request is ambiguous, ask for clarification before taking action."""

EXTRACTION_FORMAT = """## Capturing Updates From Conversation

When the user mentions journal-worthy thoughts, how they feel, new things to do, or things they finished, propose them in an extraction block instead of calling tools. The user approves each item individually. Only include relevant fields:

```extraction
JOURNAL: [Content for journal entry]
MOOD: [1-5]
ENERGY: [1-5]
NEW_TASKS:
- [task to create]
COMPLETE_TASKS:
- [task name/description to mark as done - will fuzzy match]
TOPICS: [comma-separated tags]
GOALS: [goal-related notes]
DECISIONS: [pending decisions]
```

After the extraction block, say: "Review above and approve the items you want saved."

**Examples:**
- "my mood is low" -> extraction with MOOD: 2
- "add task to buy milk" -> extraction with NEW_TASKS: - Buy milk
- "I sent the letter" -> extraction with COMPLETE_TASKS: - Send the letter"""


class ContextBuilder:
    """Builds the system prompt for every model call."""

    def __init__(self, services: DomainServices):
        self.services = services

    async def build_system_prompt(self) -> str:
        today = datetime.now(UTC).date()
        sections = [
            "You are Aurora, an AI assistant integrated into a personal productivity and life management "
            "dashboard. You help the user manage their tasks, goals, habits, journal, finances, and calendar.",
            "## Current Context\n\n"
            f"Today's Date: {today.strftime('%B %d, %Y')}\n"
            f"Day of Week: {today.strftime('%A')}",
            await self._habits_context(),
            await self._goals_context(),
            await self._finance_context(),
            await self._journal_context(),
            await self._boards_context(),
            await self._calendar_context(),
            CAPABILITIES,
            GUIDELINES,
            EXTRACTION_FORMAT,
        ]
        return "\n\n".join(section.strip() for section in sections)

    async def _habits_context(self) -> str:
        today = datetime.now(UTC).date()
        habits = await self.services.habits.list_habits()
        completed = sum(1 for h in habits if h.is_completed_on(today))
        pending = ", ".join([h.name for h in habits if not h.is_completed_on(today)][:5])
        best_streak = max((h.streak(today) for h in habits), default=0)
        return dedent(f"""
            ### Habits Status
            - Today's progress: {completed}/{len(habits)} completed
            - Pending habits: {pending or "All done!"}
            - Best current streak: {best_streak} days
        """)

    async def _goals_context(self) -> str:
        goals = await self.services.goals.list_goals()
        active = sum(1 for g in goals if g.progress < 100)
        focus = ", ".join(g.title for g in goals[:3])
        return dedent(f"""
            ### Goals Status
            - Active goals: {active}
            - Completed goals: {len(goals) - active}
            - Current focus: {focus or "No goals set"}
        """)

    async def _finance_context(self) -> str:
        summary = await self.services.finance.current_month_summary()
        return dedent(f"""
            ### Financial Status (Current Month)
            - Income: ${money(summary.income)}
            - Expenses: ${money(summary.expenses)}
            - Balance: ${money(summary.balance)}
        """)

    async def _journal_context(self) -> str:
        entry = await self.services.journal.get_entry_for_date(datetime.now(UTC).date())
        recent = await self.services.journal.recent_entries(7)
        if entry is None:
            status = "No journal entry for today yet"
        else:
            mood = f"Mood: {mood_label(entry.mood)}" if entry.mood else "Mood: not set"
            energy = f"Energy: {energy_label(entry.energy)}" if entry.energy else "Energy: not set"
            status = f"Today's entry exists ({mood}, {energy})"
        return dedent(f"""
            ### Journal Status
            - {status}
            - Entries in last 7 days: {len(recent)}
        """)

    async def _boards_context(self) -> str:
        boards = await self.services.boards.list_boards()
        open_tasks = await self.services.boards.list_open_tasks()
        names = ", ".join(b.name for b in boards)
        return dedent(f"""
            ### Boards Status
            - Active boards: {len(boards)}
            - Boards: {names or "None"}
            - Open tasks: {len(open_tasks)}
        """)

    async def _calendar_context(self) -> str:
        upcoming = await self.services.calendar.upcoming_events(5)
        today_events = await self.services.calendar.today_events()
        upcoming_text = ", ".join(f"{e.title} ({e.start_at.strftime('%b %d')})" for e in upcoming)
        return dedent(f"""
            ### Calendar Status
            - Events today: {len(today_events)}
            - Upcoming events: {upcoming_text or "None scheduled"}
        """)
