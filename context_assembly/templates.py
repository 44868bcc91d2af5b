"""Default template and persona renderers.

Templates use ``{name}`` placeholders. ``{{...}}`` is emitted literally and
unknown placeholders render as an empty string.
"""

from __future__ import annotations

import inspect
import logging
import re
from typing import Any

from .types import Message, Persona

logger = logging.getLogger(__name__)

DEFAULT_LONG_MEMORY_PROMPT = """Relevant context: {long_history}

Guidelines for response:
1. Use the system prompt as your primary guide.
2. Incorporate the provided context if relevant, but don't force its inclusion.
3. Generate thoughtful, creative, and diverse responses.
4. Avoid repetition and expand your perspective.

Your goal is to craft an insightful, engaging response that seamlessly integrates all relevant information while maintaining coherence and originality."""

DEFAULT_LORE_PROMPT = "{input}"

# {{escaped}} first so it is never treated as a variable
_PLACEHOLDER = re.compile(r"\{\{.*?\}\}|\{([A-Za-z_][A-Za-z0-9_.\-]*)\}", re.DOTALL)


class FormatTemplateRenderer:
    """Substitute ``{variable}`` placeholders from a variables mapping.

    Values may be plain objects, zero-arg callables, or awaitables.
    """

    async def render(self, template: str, variables: dict[str, Any]) -> str:
        return (await self.render_with_names(template, variables))[0]

    async def render_with_names(
        self, template: str, variables: dict[str, Any],
    ) -> tuple[str, list[str]]:
        """Render and also return the variable names that were referenced."""
        parts: list[str] = []
        names: list[str] = []
        pos = 0
        for match in _PLACEHOLDER.finditer(template):
            parts.append(template[pos:match.start()])
            pos = match.end()
            name = match.group(1)
            if name is None:
                parts.append(match.group(0))
                continue
            names.append(name)
            parts.append(await self._resolve(name, variables))
        parts.append(template[pos:])
        return "".join(parts), names

    async def _resolve(self, name: str, variables: dict[str, Any]) -> str:
        value = variables.get(name)
        if callable(value):
            value = value()
        if inspect.isawaitable(value):
            value = await value
        if value is None or value == "":
            logger.warning("Variable %s not found", name)
            return ""
        return str(value)


class DefaultPersonaRenderer:
    """Render every persona message through a template renderer."""

    def __init__(self, template_renderer: FormatTemplateRenderer | None = None) -> None:
        self.template_renderer = template_renderer or FormatTemplateRenderer()

    async def render(
        self, persona: Persona, variables: dict[str, Any],
    ) -> tuple[list[Message], list[str]]:
        rendered: list[Message] = []
        used: list[str] = []
        for message in persona.messages:
            content, names = await self.template_renderer.render_with_names(
                message.content, variables,
            )
            used.extend(n for n in names if n not in used)
            rendered.append(Message(
                role=message.role,
                content=content,
                tag=message.tag,
                name=message.name,
                metadata=dict(message.metadata) if message.metadata else None,
            ))
        return rendered, used
