"""Aurora: conversational tool orchestration for a personal productivity dashboard."""

__version__ = "0.1.0"
