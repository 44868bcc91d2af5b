"""HistoryPacker: keep the most recent chat history that fits the budget."""

from __future__ import annotations

import asyncio
import logging

from ..types import Message, TokenCounter
from .budget import BudgetTracker

logger = logging.getLogger(__name__)


async def count_message_tokens(counter: TokenCounter, message: Message) -> int:
    """Content tokens + role label tokens (+ name tokens when the message is named)."""
    tokens = await counter(message.content) + await counter(message.role.value)
    if message.name:
        tokens += await counter(message.name)
    return tokens


async def count_messages(counter: TokenCounter, messages: list[Message]) -> list[int]:
    """Count independent messages concurrently; results line up with ``messages``."""
    return list(await asyncio.gather(*(count_message_tokens(counter, m) for m in messages)))


class HistoryPacker:
    """Greedy reverse-chronological packing with stop-at-first-miss.

    Walks history newest-first and keeps each message while it fits under
    ``limit - margin``. The first message that does not fit ends the walk:
    older messages are never tried, even if they would fit on their own.
    """

    def __init__(
        self,
        token_counter: TokenCounter,
        margin: int = 80,
        margin_with_documents: int = 480,
    ) -> None:
        self.token_counter = token_counter
        self.margin = margin
        self.margin_with_documents = margin_with_documents

    async def pack(
        self,
        history: list[Message],
        has_supplementary_docs: bool,
        tracker: BudgetTracker,
    ) -> list[Message]:
        margin = self.margin_with_documents if has_supplementary_docs else self.margin
        kept: list[Message] = []

        for message in reversed(history):
            tokens = await count_message_tokens(self.token_counter, message)
            if not tracker.fits(tokens, margin):
                logger.debug(
                    "history: dropping %d older message(s), next would overflow by %d tokens",
                    len(history) - len(kept), tracker.overflow(tokens, margin),
                )
                break
            tracker.charge(tokens, stage="history")
            kept.append(message)

        kept.reverse()
        return kept
