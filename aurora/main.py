"""Main FastAPI application."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from aurora import __version__
from aurora.api.endpoints import router
from aurora.utils.logging import setup_logging

setup_logging()

app = FastAPI(
    title="Aurora",
    description=(
        "A conversational assistant for a personal productivity dashboard: boards, goals, habits, "
        "journal, finances and calendar, with confirmation before any change is made."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    tags_metadata=[
        {
            "name": "Chat",
            "description": (
                "Run conversational turns. Tools that change data return a pending confirmation "
                "that must be confirmed or cancelled before the turn continues."
            ),
        },
        {
            "name": "Conversations",
            "description": "Create, list and delete conversations and read their history and tool audit trail.",
        },
        {
            "name": "Extraction",
            "description": "Review and apply journal and task updates the assistant proposed from the conversation.",
        },
        {
            "name": "Health",
            "description": "Service health monitoring and status checks.",
        },
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("aurora.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
