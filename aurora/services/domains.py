"""Container for the productivity domain services the tools operate on."""

from dataclasses import dataclass, field

from aurora.services.boards import InMemoryBoardService
from aurora.services.calendar import InMemoryCalendarService
from aurora.services.finance import InMemoryFinanceService
from aurora.services.goals import InMemoryGoalService
from aurora.services.habits import InMemoryHabitService
from aurora.services.journal import InMemoryJournalService


@dataclass
class DomainServices:
    boards: InMemoryBoardService = field(default_factory=InMemoryBoardService)
    goals: InMemoryGoalService = field(default_factory=InMemoryGoalService)
    habits: InMemoryHabitService = field(default_factory=InMemoryHabitService)
    journal: InMemoryJournalService = field(default_factory=InMemoryJournalService)
    finance: InMemoryFinanceService = field(default_factory=InMemoryFinanceService)
    calendar: InMemoryCalendarService = field(default_factory=InMemoryCalendarService)


domain_services = DomainServices()
