"""AuthorsNoteInjector: render and splice the author's note."""

from __future__ import annotations

from typing import Any

from ..types import (
    AnchorPosition,
    AuthorsNote,
    Message,
    Role,
    TemplateRenderer,
    TokenCounter,
)
from .positions import PositionResolver


class AuthorsNoteInjector:
    def __init__(self, token_counter: TokenCounter, template_renderer: TemplateRenderer) -> None:
        self.token_counter = token_counter
        self.template_renderer = template_renderer

    async def prepare(self, note: AuthorsNote, variables: dict[str, Any]) -> tuple[str, int]:
        """Render the note and count it. Charging is left to the caller."""
        text = await self.template_renderer.render(note.content, variables)
        return text, await self.token_counter(text)

    def inject(
        self,
        note: AuthorsNote,
        prepared: tuple[str, int],
        sequence: list[Message],
        resolver: PositionResolver,
    ) -> int:
        """Splice the prepared note into ``sequence``.

        For ``in_chat`` the depth counts back from the newest message, which
        is the current input by the time this runs. Other positions ignore
        depth.
        """
        text, tokens = prepared
        index = resolver.resolve(sequence, note.insert_position)
        if note.insert_position == AnchorPosition.IN_CHAT:
            index = resolver.clamp(sequence, index - note.insert_depth)
        sequence.insert(index, Message(role=Role.SYSTEM, content=text))
        return tokens
