"""Fast-model check of whether a message needs tools at all."""

from enum import StrEnum

from aurora.clients.anthropic import AnthropicClient
from aurora.models.llm import LLMMessage
from aurora.utils.logging import get_logger

logger = get_logger(__name__)

INTENT_SYSTEM_PROMPT = """You are an intent classifier. Analyze the user's message and determine if they are:
1. Requesting an ACTION (create, update, delete, view specific data, track something, log something)
2. Just having a CONVERSATION (greeting, question about you, general chat, testing, unclear intent)

Respond with ONLY one word: "ACTION" or "CONVERSATION"

Examples:
- "hello" -> CONVERSATION
- "testing" -> CONVERSATION
- "what can you do?" -> CONVERSATION
- "how are you?" -> CONVERSATION
- "create a task" -> ACTION
- "show my habits" -> ACTION
- "what are my goals?" -> ACTION
- "log an expense of $50" -> ACTION
- "mark habit as done" -> ACTION
- "hi, add a task for groceries" -> ACTION
"""


class Intent(StrEnum):
    NEEDS_TOOLS = "needs_tools"
    CONVERSATION_ONLY = "conversation_only"


class IntentClassifier:
    """Asks the fast model for a one-word verdict; any failure means tools are offered."""

    def __init__(self, llm_client: AnthropicClient):
        self.llm_client = llm_client

    async def classify(self, message: str) -> Intent:
        config = self.llm_client.config
        try:
            response = await self.llm_client.send(
                [LLMMessage(role="user", content=message)],
                system_prompt=INTENT_SYSTEM_PROMPT,
                model=config.fast_model,
                max_tokens=config.classifier_max_tokens,
                timeout=config.classifier_timeout,
                retries=1,
            )
        except Exception as e:
            logger.warning(f"Intent analysis failed, assuming tools are needed: {e}")
            return Intent.NEEDS_TOOLS

        if "ACTION" in response.text.upper():
            return Intent.NEEDS_TOOLS
        return Intent.CONVERSATION_ONLY
