"""All dataclasses, Protocols, and type aliases for context-assembly."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Protocol, Union, runtime_checkable


# ---------------------------------------------------------------------------
# Messages & anchors
# ---------------------------------------------------------------------------

class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


ROLE_ALIASES: dict[str, Role] = {
    "system": Role.SYSTEM,
    "user": Role.USER,
    "human": Role.USER,
    "assistant": Role.ASSISTANT,
    "ai": Role.ASSISTANT,
    "model": Role.ASSISTANT,
}


class AnchorTag(str, Enum):
    """Structural marker on a message, set by whoever emits the message."""
    DESCRIPTION = "description"
    PERSONALITY = "personality"
    SCENARIO = "scenario"
    EXAMPLE_FIRST = "example_first"
    EXAMPLE_LAST = "example_last"
    FIRST_MESSAGE = "first_message"
    LONG_MEMORY_ACK = "long_memory_ack"


class AnchorPosition(str, Enum):
    IN_CHAT = "in_chat"
    BEFORE_CHAR_DEFS = "before_char_defs"
    AFTER_CHAR_DEFS = "after_char_defs"
    BEFORE_EXAMPLE_MESSAGES = "before_example_messages"
    AFTER_EXAMPLE_MESSAGES = "after_example_messages"
    DEFAULT = "default"

    @classmethod
    def parse(cls, value: str | AnchorPosition | None) -> AnchorPosition:
        """Parse a position name, accepting the short ``before_char``/``after_char`` forms."""
        if value is None:
            return cls.DEFAULT
        if isinstance(value, AnchorPosition):
            return value
        value = value.strip().lower()
        if value == "before_char":
            return cls.BEFORE_CHAR_DEFS
        if value == "after_char":
            return cls.AFTER_CHAR_DEFS
        return cls(value)


@dataclass
class Message:
    role: Role
    content: str
    tag: AnchorTag | None = None
    name: str | None = None
    metadata: dict | None = None


@dataclass
class Document:
    """A unit of retrieved memory/knowledge content."""
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Lore & author's note
# ---------------------------------------------------------------------------

@dataclass
class LoreEntry:
    content: str
    keywords: list[str] = field(default_factory=list)
    insert_position: AnchorPosition = AnchorPosition.DEFAULT
    token_budget: int | None = None
    enabled: bool = True
    constant: bool = False         # always matched, regardless of keywords
    order: int = 0
    # Matcher overrides; None falls back to the owning LoreBook
    scan_depth: int | None = None
    recursive_scan: bool | None = None
    max_recursion_depth: int | None = None
    match_whole_word: bool | None = None
    case_sensitive: bool | None = None


@dataclass
class LoreBook:
    entries: list[LoreEntry] = field(default_factory=list)
    token_budget: int | None = None   # reserve kept free when injecting lore
    scan_depth: int = 2
    recursive_scan: bool = True
    max_recursion_depth: int = 3
    match_whole_word: bool = False
    case_sensitive: bool = True


@dataclass
class AuthorsNote:
    content: str
    insert_position: AnchorPosition = AnchorPosition.IN_CHAT
    insert_depth: int = 0
    insert_frequency: int = 1  # interpreted by the caller, not the assembler

    def __post_init__(self) -> None:
        if self.insert_depth < 0:
            raise ValueError(f"insert_depth must be >= 0, got {self.insert_depth}")


# ---------------------------------------------------------------------------
# Persona
# ---------------------------------------------------------------------------

@dataclass
class Persona:
    """Persona definition: tagged prompt messages plus per-persona templates."""
    name: str
    messages: list[Message] = field(default_factory=list)
    lore_book: LoreBook | None = None
    authors_note: AuthorsNote | None = None
    long_memory_prompt: str | None = None
    lore_prompt: str | None = None

    def fingerprint(self) -> str:
        """Stable identity of the persona's prompt content (sha256[:16])."""
        payload = json.dumps(
            [self.name] + [
                [m.role.value, m.content, m.tag.value if m.tag else None, m.name, m.metadata]
                for m in self.messages
            ],
            sort_keys=True,
            default=repr,
            ensure_ascii=False,
        )
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


# ---------------------------------------------------------------------------
# Request & result
# ---------------------------------------------------------------------------

Instructions = Union[str, Callable[[], Union[str, None, Awaitable[Union[str, None]]]], None]
Scratchpad = Union[list[Message], Message, str, None]


@dataclass
class AssemblyRequest:
    """Everything one assembly call needs, resolved at the call boundary."""
    input: Message
    history: list[Message] = field(default_factory=list)  # oldest -> newest
    long_memory: list[Document] = field(default_factory=list)
    knowledge: list[Document] = field(default_factory=list)
    extra_documents: list[list[Document]] = field(default_factory=list)
    lore_entries: list[LoreEntry] = field(default_factory=list)
    authors_note: AuthorsNote | None = None
    instructions: Instructions = None
    scratchpad: Scratchpad = None
    variables: dict[str, Any] = field(default_factory=dict)

    def document_groups(self) -> list[list[Document]]:
        return [self.long_memory, self.knowledge, *self.extra_documents]

    def has_documents(self) -> bool:
        return any(group for group in self.document_groups())


@dataclass
class AssembledContext:
    messages: list[Message] = field(default_factory=list)
    used_tokens: int = 0
    token_limit: int = 0
    budget_breakdown: dict[str, int] = field(default_factory=dict)
    persona_variables: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------

TokenCounter = Callable[[str], Awaitable[int]]


@runtime_checkable
class TemplateRenderer(Protocol):
    async def render(self, template: str, variables: dict[str, Any]) -> str: ...


@runtime_checkable
class PersonaRenderer(Protocol):
    async def render(
        self, persona: Persona, variables: dict[str, Any],
    ) -> tuple[list[Message], list[str]]: ...


class ContextAssemblyError(Exception):
    """Base error for the assembly engine."""


class PersonaRenderError(ContextAssemblyError):
    """Persona could not be resolved or rendered into a message block."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class TemplateConfig:
    long_memory: str | None = None  # None -> DEFAULT_LONG_MEMORY_PROMPT
    lore: str = "{input}"


@dataclass
class AssemblyConfig:
    version: str = "0.1"
    token_limit: int = 4096
    token_counter: str = "estimate"
    history_margin: int = 80
    history_margin_with_documents: int = 480
    document_margin: int = 80
    lore_token_budget: int = 300
    persona_cache_size: int = 32
    instructions: str | None = None
    templates: TemplateConfig = field(default_factory=TemplateConfig)
