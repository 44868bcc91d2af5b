"""ContextAssembler: build the final message list from competing sources within a token budget."""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Union

from ..templates import DefaultPersonaRenderer, FormatTemplateRenderer
from ..token_counter import as_async_counter, create_token_counter
from ..types import (
    AssembledContext,
    AssemblyConfig,
    AssemblyRequest,
    Instructions,
    LoreEntry,
    Message,
    Persona,
    PersonaRenderer,
    PersonaRenderError,
    Role,
    Scratchpad,
    TemplateRenderer,
)
from .authors_note import AuthorsNoteInjector
from .budget import BudgetTracker
from .documents import DocumentFolder
from .history import HistoryPacker, count_message_tokens, count_messages
from .lore import LoreInjector
from .persona_cache import PersonaCache, has_dynamic_values
from .positions import PositionResolver

logger = logging.getLogger(__name__)

PersonaSource = Union[Persona, Callable[[], Union[Persona, Awaitable[Persona]]], None]


class ContextAssembler:
    """Assemble the ordered message list sent to the model.

    Assembly order (top to bottom in the final prompt):
    1. instructions (one system message, when present)
    2. persona block (rendered, memoized in a PersonaCache)
    3. chat history, newest kept first under the history margin
    4. one folded summary per document group (long memory, knowledge, extras)
    5. lore groups, spliced at their anchors
    6. the current input, then the author's note spliced relative to it
    7. agent scratchpad

    Budget exhaustion never raises: sources simply stop being included and a
    log line records the stage and overflow. Collaborator errors propagate.
    """

    def __init__(
        self,
        config: AssemblyConfig | None = None,
        token_counter: Callable[[str], Union[int, Awaitable[int]]] | None = None,
        persona: PersonaSource = None,
        persona_renderer: PersonaRenderer | None = None,
        template_renderer: TemplateRenderer | None = None,
        persona_cache: PersonaCache | None = None,
    ) -> None:
        self.config = config or AssemblyConfig()
        self.token_counter = as_async_counter(
            token_counter or create_token_counter(self.config.token_counter)
        )
        self.persona = persona
        self.template_renderer = template_renderer or FormatTemplateRenderer()
        self.persona_renderer = persona_renderer or DefaultPersonaRenderer()
        self.persona_cache = persona_cache or PersonaCache(self.config.persona_cache_size)

        self.history_packer = HistoryPacker(
            self.token_counter,
            margin=self.config.history_margin,
            margin_with_documents=self.config.history_margin_with_documents,
        )
        self.document_folder = DocumentFolder(
            self.token_counter, self.template_renderer, margin=self.config.document_margin,
        )
        self.lore_injector = LoreInjector(
            self.token_counter, self.template_renderer, token_budget=self.config.lore_token_budget,
        )
        self.authors_note_injector = AuthorsNoteInjector(self.token_counter, self.template_renderer)

    @property
    def token_limit(self) -> int:
        return self.config.token_limit

    async def assemble(
        self,
        request: AssemblyRequest,
        persona: PersonaSource = None,
    ) -> AssembledContext:
        """Build the final message list for one model call."""
        tracker = BudgetTracker(self.token_limit)
        result: list[Message] = []
        variables = dict(request.variables)

        instructions = await self._resolve_instructions(request.instructions)
        if instructions:
            message = Message(role=Role.SYSTEM, content=instructions)
            tracker.charge(
                await count_message_tokens(self.token_counter, message), stage="instructions",
            )
            result.append(message)

        resolved = await self._resolve_persona(persona if persona is not None else self.persona)
        system_block: list[Message] = []
        persona_variables: list[str] = []
        if resolved is not None:
            system_block, persona_variables = await self._render_persona(resolved, variables)
            for message, tokens in zip(
                system_block, await count_messages(self.token_counter, system_block),
            ):
                tracker.charge(tokens, stage="persona")
                result.append(message)
        resolver = PositionResolver(len(system_block))

        tracker.charge(await self.token_counter(request.input.content), stage="input")

        note = request.authors_note
        if note is None and resolved is not None:
            note = resolved.authors_note
        prepared_note = None
        if note is not None and note.content:
            prepared_note = await self.authors_note_injector.prepare(note, variables)
            tracker.charge(prepared_note[1], stage="authors_note")

        scratchpad = self._coerce_scratchpad(request.scratchpad)
        if scratchpad:
            tracker.charge(
                sum(await count_messages(self.token_counter, scratchpad)), stage="scratchpad",
            )

        result.extend(
            await self.history_packer.pack(request.history, request.has_documents(), tracker)
        )

        summary_template = self.config.templates.long_memory
        if resolved is not None and resolved.long_memory_prompt:
            summary_template = resolved.long_memory_prompt
        for group in request.document_groups():
            summary = await self.document_folder.fold(
                group, tracker, template=summary_template, variables=variables,
            )
            if summary is not None:
                result.append(summary)

        if request.lore_entries:
            await self.lore_injector.inject(
                request.lore_entries,
                tracker,
                result,
                resolver,
                template=self._lore_template(resolved),
                variables=variables,
                token_budget=self._lore_budget(resolved, request.lore_entries),
            )

        result.append(request.input)

        if prepared_note is not None:
            self.authors_note_injector.inject(note, prepared_note, result, resolver)

        result.extend(scratchpad)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Used tokens: %d of limit %d (%s); roles: %s",
                tracker.usage, tracker.limit, tracker.breakdown,
                [m.role.value for m in result],
            )

        return AssembledContext(
            messages=result,
            used_tokens=tracker.usage,
            token_limit=tracker.limit,
            budget_breakdown=dict(tracker.breakdown),
            persona_variables=persona_variables,
        )

    async def _resolve_instructions(self, instructions: Instructions) -> str | None:
        if instructions is None:
            instructions = self.config.instructions
        if callable(instructions):
            instructions = instructions()
        if inspect.isawaitable(instructions):
            instructions = await instructions
        return instructions or None

    async def _resolve_persona(self, source: PersonaSource) -> Persona | None:
        if source is None:
            return None
        persona: Any = source
        if callable(source):
            persona = source()
            if inspect.isawaitable(persona):
                persona = await persona
        if not isinstance(persona, Persona):
            raise PersonaRenderError(f"Persona source returned {type(persona).__name__}, not a Persona")
        return persona

    async def _render_persona(
        self, persona: Persona, variables: dict[str, Any],
    ) -> tuple[list[Message], list[str]]:
        if not isinstance(self.persona_renderer, PersonaRenderer):
            raise PersonaRenderError(
                f"Persona renderer {type(self.persona_renderer).__name__} has no render()"
            )

        key = None
        if not has_dynamic_values(variables):
            key = self.persona_cache.key(persona, variables, self.persona_renderer)
            cached = self.persona_cache.get(key)
            if cached is not None:
                return cached

        rendered = await self.persona_renderer.render(persona, variables)
        if not (isinstance(rendered, tuple) and len(rendered) == 2 and isinstance(rendered[0], list)):
            raise PersonaRenderError(
                f"Persona renderer returned {type(rendered).__name__}, expected (messages, variables)"
            )
        messages, names = rendered
        if key is not None:
            self.persona_cache.put(key, messages, names)
        return messages, list(names)

    def _lore_template(self, persona: Persona | None) -> str:
        if persona is not None and persona.lore_prompt:
            return persona.lore_prompt
        return self.config.templates.lore

    def _lore_budget(self, persona: Persona | None, entries: list[LoreEntry]) -> int:
        if persona is not None and persona.lore_book and persona.lore_book.token_budget is not None:
            return persona.lore_book.token_budget
        for entry in entries:
            if entry.token_budget is not None:
                return entry.token_budget
        return self.config.lore_token_budget

    @staticmethod
    def _coerce_scratchpad(scratchpad: Scratchpad) -> list[Message]:
        if scratchpad is None:
            return []
        if isinstance(scratchpad, str):
            return [Message(role=Role.USER, content=scratchpad)] if scratchpad else []
        if isinstance(scratchpad, Message):
            return [scratchpad]
        return list(scratchpad)
