"""DocumentFolder: merge a document group into one summary message."""

from __future__ import annotations

import json
import logging
from typing import Any

from ..templates import DEFAULT_LONG_MEMORY_PROMPT
from ..types import Document, Message, Role, TemplateRenderer, TokenCounter
from .budget import BudgetTracker

logger = logging.getLogger(__name__)


def format_document(document: Document) -> str:
    return f"{document.text} metadata: {json.dumps(document.metadata, ensure_ascii=False)}"


class DocumentFolder:
    """Fold one group of documents into a single system message.

    Documents are taken in the given order until one would push usage past
    ``limit - margin``; that document and everything after it is dropped.
    The kept documents are rendered into the ``{long_history}`` slot of the
    summary template.
    """

    def __init__(
        self,
        token_counter: TokenCounter,
        template_renderer: TemplateRenderer,
        margin: int = 80,
    ) -> None:
        self.token_counter = token_counter
        self.template_renderer = template_renderer
        self.margin = margin

    async def fold(
        self,
        documents: list[Document],
        tracker: BudgetTracker,
        template: str | None = None,
        variables: dict[str, Any] | None = None,
    ) -> Message | None:
        kept: list[Document] = []

        for index, document in enumerate(documents):
            if not document.text:
                continue
            tokens = await self.token_counter(document.text)
            if not tracker.fits(tokens, self.margin):
                logger.debug(
                    "documents: dropping %d document(s), next would overflow by %d tokens",
                    sum(1 for d in documents[index:] if d.text), tracker.overflow(tokens, self.margin),
                )
                break
            tracker.charge(tokens, stage="documents")
            kept.append(document)

        if not kept:
            return None

        content = await self.template_renderer.render(
            template or DEFAULT_LONG_MEMORY_PROMPT,
            {**(variables or {}), "long_history": "\n".join(format_document(d) for d in kept)},
        )
        return Message(role=Role.SYSTEM, content=content)
