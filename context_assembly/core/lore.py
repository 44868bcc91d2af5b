"""LoreInjector: budget world-info entries and splice them in by anchor."""

from __future__ import annotations

import logging
from typing import Any

from ..templates import DEFAULT_LORE_PROMPT
from ..types import (
    AnchorPosition,
    AnchorTag,
    LoreEntry,
    Message,
    Role,
    TemplateRenderer,
    TokenCounter,
)
from .budget import BudgetTracker
from .positions import PositionResolver

logger = logging.getLogger(__name__)

DEFAULT_LORE_TOKEN_BUDGET = 300


class LoreInjector:
    """Include lore entries in caller order until the first one that does not fit.

    The ceiling is ``limit - usage - reserve``, fixed when injection starts.
    Accepted entries are grouped by insert position; each group becomes one
    ``user`` message rendered through the lore template's ``{input}`` slot.
    """

    def __init__(
        self,
        token_counter: TokenCounter,
        template_renderer: TemplateRenderer,
        token_budget: int = DEFAULT_LORE_TOKEN_BUDGET,
    ) -> None:
        self.token_counter = token_counter
        self.template_renderer = template_renderer
        self.token_budget = token_budget

    async def inject(
        self,
        entries: list[LoreEntry],
        tracker: BudgetTracker,
        sequence: list[Message],
        resolver: PositionResolver,
        template: str | None = None,
        variables: dict[str, Any] | None = None,
        token_budget: int | None = None,
    ) -> int:
        """Splice grouped lore into ``sequence``; return tokens spent."""
        template = template or DEFAULT_LORE_PROMPT
        variables = variables or {}
        reserve = token_budget if token_budget is not None else self.token_budget
        ceiling = tracker.limit - tracker.usage - reserve

        groups: dict[AnchorPosition, list[str]] = {}
        spent = 0

        for entry in entries:
            if not entry.content:
                continue
            tokens = await self.token_counter(entry.content)
            if tracker.usage + tokens > ceiling:
                logger.warning(
                    "lore: %d tokens exceed limit %d by %d, skipping remaining lore entries",
                    tracker.usage + tokens, ceiling, tracker.usage + tokens - ceiling,
                )
                break
            tracker.charge(tokens, stage="lore")
            spent += tokens
            groups.setdefault(entry.insert_position, []).append(entry.content)

        if not groups:
            return spent

        template_tokens = await self.token_counter(template)

        for position, contents in groups.items():
            body = await self.template_renderer.render("\n".join(contents), variables)
            text = await self.template_renderer.render(template, {**variables, "input": body})
            message = Message(role=Role.USER, content=text)

            tracker.charge(template_tokens, stage="lore")
            spent += template_tokens

            if position == AnchorPosition.DEFAULT:
                ack = next(
                    (i for i, m in enumerate(sequence) if m.tag == AnchorTag.LONG_MEMORY_ACK),
                    -1,
                )
                if ack != -1:
                    sequence.insert(ack, message)
                else:
                    sequence.append(message)
                continue

            sequence.insert(resolver.resolve(sequence, position), message)

        return spent
