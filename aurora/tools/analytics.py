"""Read-only analytics across every productivity domain."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

from pydantic import BaseModel, Field

from aurora.services.domains import DomainServices
from aurora.services.finance import category_label
from aurora.services.journal import energy_label, mood_label
from aurora.tools.base import EmptyInput, ToolDefinition, ToolDomain, ToolResult, ToolSuccess, parse_date
from aurora.tools.finance import format_summary, money


class ProductivityInput(BaseModel):
    days: int = Field(default=30, ge=1, description="Number of days to analyze")


class FinanceAnalysisInput(BaseModel):
    start_date: str | None = Field(default=None, description="Start date")
    end_date: str | None = Field(default=None, description="End date")


class WeeklyReportInput(BaseModel):
    week_offset: int = Field(default=0, le=0, description="0 for current week, -1 for last week")


def _average(values: list[int]) -> float | None:
    return round(sum(values) / len(values), 1) if values else None


def _productivity_insights(habit_stats: dict, goal_stats: dict) -> list[str]:
    insights = []
    if goal_stats["average_progress"] >= 50:
        insights.append(f"Good progress on goals - {goal_stats['average_progress']}% average")
    else:
        insights.append(f"Goals need attention - only {goal_stats['average_progress']}% average progress")
    if habit_stats["best_streak"] >= 7:
        insights.append(f"Great streak! {habit_stats['best_streak']} days on your best habit")
    if habit_stats["completed_today"] == habit_stats["total"]:
        insights.append("All habits completed today!")
    else:
        insights.append(f"{habit_stats['total'] - habit_stats['completed_today']} habit(s) remaining today")
    return insights


def create_analytics_tools(services: DomainServices) -> list[ToolDefinition]:
    async def analyze_productivity(params: ProductivityInput) -> ToolResult:
        today = datetime.now(UTC).date()
        habits = await services.habits.list_habits()
        goals = await services.goals.list_goals()
        open_tasks = await services.boards.list_open_tasks()

        habit_stats = {
            "total": len(habits),
            "completed_today": sum(1 for h in habits if h.is_completed_on(today)),
            "best_streak": max((h.streak(today) for h in habits), default=0),
            "completion_rates": sorted(
                ({"name": h.name, "rate": h.completion_rate(params.days, today)} for h in habits),
                key=lambda entry: entry["rate"],
                reverse=True,
            ),
        }
        goal_stats = {
            "total": len(goals),
            "completed": sum(1 for g in goals if g.progress >= 100),
            "in_progress": sum(1 for g in goals if 0 < g.progress < 100),
            "not_started": sum(1 for g in goals if g.progress == 0),
            "average_progress": _average([g.progress for g in goals]) or 0,
        }
        task_stats = {
            "open": len(open_tasks),
            "overdue": sum(1 for t in open_tasks if t.due_date and t.due_date < today),
        }
        return ToolSuccess(
            {
                "period_days": params.days,
                "habits": habit_stats,
                "goals": goal_stats,
                "tasks": task_stats,
                "insights": _productivity_insights(habit_stats, goal_stats),
            }
        )

    async def analyze_finances(params: FinanceAnalysisInput) -> ToolResult:
        end = parse_date(params.end_date) or datetime.now(UTC).date()
        start = parse_date(params.start_date) or end - timedelta(days=30)
        summary = await services.finance.summary_for_range(start, end)
        by_category = await services.finance.expenses_by_category(start, end)

        breakdown = []
        for category, amount in by_category.items():
            share = float(amount / summary.expenses * 100) if summary.expenses else 0.0
            breakdown.append(
                {
                    "category": category,
                    "category_label": category_label(category),
                    "amount": money(amount),
                    "percentage": round(share, 1),
                }
            )
        breakdown.sort(key=lambda entry: entry["percentage"], reverse=True)

        if summary.income > 0:
            savings_rate = f"{round(float((summary.income - summary.expenses) / summary.income * 100), 1)}%"
        else:
            savings_rate = "N/A"

        insights = ["Positive balance this period!" if summary.balance > Decimal("0") else "Spending exceeds income"]
        if breakdown and breakdown[0]["percentage"] > 30:
            insights.append(f"{breakdown[0]['category_label']} is {breakdown[0]['percentage']}% of spending")

        return ToolSuccess(
            {
                "period": f"{start} to {end}",
                "summary": {**format_summary(summary), "savings_rate": savings_rate},
                "category_breakdown": breakdown,
                "insights": insights,
            }
        )

    async def get_daily_summary(params: EmptyInput) -> ToolResult:
        today = datetime.now(UTC).date()
        habits = await services.habits.list_habits()
        entry = await services.journal.get_entry_for_date(today)
        month = await services.finance.current_month_summary()
        recent = await services.finance.recent_transactions(3)
        today_events = await services.calendar.today_events()
        upcoming = await services.calendar.upcoming_events(3)
        open_tasks = await services.boards.list_open_tasks()

        if entry:
            journal = {
                "has_entry": True,
                "mood": entry.mood,
                "mood_label": mood_label(entry.mood) if entry.mood else None,
                "energy": entry.energy,
                "energy_label": energy_label(entry.energy) if entry.energy else None,
                "has_content": entry.content is not None,
            }
        else:
            journal = {"has_entry": False}

        return ToolSuccess(
            {
                "date": today,
                "day_of_week": today.strftime("%A"),
                "habits": {
                    "completed": sum(1 for h in habits if h.is_completed_on(today)),
                    "total": len(habits),
                    "pending": [h.name for h in habits if not h.is_completed_on(today)][:5],
                },
                "tasks": {
                    "open": len(open_tasks),
                    "due_today": [t.title for t in open_tasks if t.due_date == today],
                },
                "journal": journal,
                "finance": {
                    "monthly_income": money(month.income),
                    "monthly_expenses": money(month.expenses),
                    "monthly_balance": money(month.balance),
                    "recent_transactions": [
                        {"amount": money(t.amount), "type": t.kind, "description": t.description} for t in recent
                    ],
                },
                "calendar": {
                    "events_today": len(today_events),
                    "today_events": [{"title": e.title, "time": e.start_at.strftime("%H:%M")} for e in today_events],
                    "upcoming": [{"title": e.title, "date": e.start_at.date()} for e in upcoming],
                },
            }
        )

    async def get_weekly_report(params: WeeklyReportInput) -> ToolResult:
        today = datetime.now(UTC).date()
        monday = today - timedelta(days=today.weekday()) + timedelta(weeks=params.week_offset)
        sunday = monday + timedelta(days=6)

        entries = await services.journal.entries_for_range(monday, sunday)
        finance = await services.finance.summary_for_range(monday, sunday)
        events = await services.calendar.events_for_range(monday, sunday)

        return ToolSuccess(
            {
                "week": f"{monday} to {sunday}",
                "is_current_week": params.week_offset == 0,
                "journal": {
                    "entries_count": len(entries),
                    "average_mood": _average([e.mood for e in entries if e.mood is not None]),
                    "average_energy": _average([e.energy for e in entries if e.energy is not None]),
                },
                "finance": {
                    "income": money(finance.income),
                    "expenses": money(finance.expenses),
                    "balance": money(finance.balance),
                },
                "events": {
                    "total": len(events),
                    "events": [{"title": e.title, "date": e.start_at.date()} for e in events],
                },
            }
        )

    domain = ToolDomain.ANALYTICS
    return [
        ToolDefinition(
            "analyze_productivity",
            "Analyze overall productivity including task completion, habit streaks, and goal progress",
            ProductivityInput,
            analyze_productivity,
            domain,
        ),
        ToolDefinition(
            "analyze_finances",
            "Analyze financial data including spending by category and trends",
            FinanceAnalysisInput,
            analyze_finances,
            domain,
        ),
        ToolDefinition(
            "get_daily_summary",
            "Get a comprehensive summary of today's status across all areas",
            EmptyInput,
            get_daily_summary,
            domain,
        ),
        ToolDefinition(
            "get_weekly_report", "Generate a weekly productivity report", WeeklyReportInput, get_weekly_report, domain
        ),
    ]
