"""context-assembly: budgeted prompt assembly from persona, history, memory and lore."""

from .config import load_config
from .core.assembler import ContextAssembler
from .core.persona_cache import PersonaCache
from .types import (
    AnchorPosition,
    AnchorTag,
    AssembledContext,
    AssemblyConfig,
    AssemblyRequest,
    AuthorsNote,
    Document,
    LoreBook,
    LoreEntry,
    Message,
    Persona,
    PersonaRenderError,
    Role,
)

__version__ = "0.1.0"

__all__ = [
    "ContextAssembler",
    "PersonaCache",
    "load_config",
    "AnchorPosition",
    "AnchorTag",
    "AssembledContext",
    "AssemblyConfig",
    "AssemblyRequest",
    "AuthorsNote",
    "Document",
    "LoreBook",
    "LoreEntry",
    "Message",
    "Persona",
    "PersonaRenderError",
    "Role",
]
