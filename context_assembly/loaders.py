"""Load personas and assembly requests from YAML/JSON documents."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from .types import (
    ROLE_ALIASES,
    AnchorPosition,
    AnchorTag,
    AssemblyRequest,
    AuthorsNote,
    Document,
    LoreBook,
    LoreEntry,
    Message,
    Persona,
)

# Long-form tag names written by persona authors
TAG_ALIASES: dict[str, AnchorTag] = {
    "example_message_first": AnchorTag.EXAMPLE_FIRST,
    "example_message_last": AnchorTag.EXAMPLE_LAST,
    "long_memory_acknowledged": AnchorTag.LONG_MEMORY_ACK,
}


def _get(raw: dict[str, Any], *names: str, default: Any = None) -> Any:
    """First present key among snake_case / camelCase spellings."""
    for name in names:
        if name in raw and raw[name] is not None:
            return raw[name]
    return default


def _read(source: str | Path | dict) -> dict[str, Any]:
    if isinstance(source, dict):
        return source
    path = Path(source) if isinstance(source, Path) or "\n" not in source else None
    if path is not None and path.is_file():
        text = path.read_text()
        if path.suffix == ".json":
            return json.loads(text)
    else:
        text = str(source)
    return yaml.safe_load(text) or {}


def parse_tag(value: str | None) -> AnchorTag | None:
    if not value:
        return None
    value = value.strip().lower()
    if value in TAG_ALIASES:
        return TAG_ALIASES[value]
    return AnchorTag(value)


def parse_message(raw: dict[str, Any] | str) -> Message:
    if isinstance(raw, str):
        raw = {"role": "user", "content": raw}
    role_name = str(raw.get("role", "user")).lower()
    if role_name not in ROLE_ALIASES:
        raise ValueError(f"Unknown role: {role_name}")
    content = raw.get("content")
    if content is None:
        raise ValueError("Message content is required")
    return Message(
        role=ROLE_ALIASES[role_name],
        content=str(content).strip(),
        tag=parse_tag(_get(raw, "tag", "type")),
        name=raw.get("name"),
        metadata=raw.get("metadata"),
    )


def parse_document(raw: dict[str, Any] | str) -> Document:
    if isinstance(raw, str):
        return Document(text=raw)
    return Document(
        text=str(_get(raw, "text", "page_content", "pageContent", default="")),
        metadata=dict(raw.get("metadata") or {}),
    )


def parse_lore_entry(raw: dict[str, Any]) -> LoreEntry:
    keywords = raw.get("keywords", [])
    if isinstance(keywords, str):
        keywords = [keywords]
    return LoreEntry(
        content=str(raw.get("content", "")),
        keywords=[str(k) for k in keywords],
        insert_position=AnchorPosition.parse(_get(raw, "insert_position", "insertPosition")),
        token_budget=_get(raw, "token_budget", "tokenLimit"),
        enabled=bool(raw.get("enabled", True)),
        constant=bool(raw.get("constant", False)),
        order=int(raw.get("order", 0)),
        scan_depth=_get(raw, "scan_depth", "scanDepth"),
        recursive_scan=_get(raw, "recursive_scan", "recursiveScan"),
        max_recursion_depth=_get(raw, "max_recursion_depth", "maxRecursionDepth"),
        match_whole_word=_get(raw, "match_whole_word", "matchWholeWord"),
        case_sensitive=_get(raw, "case_sensitive", "caseSensitive"),
    )


def parse_authors_note(raw: dict[str, Any] | str) -> AuthorsNote:
    if isinstance(raw, str):
        return AuthorsNote(content=raw)
    return AuthorsNote(
        content=str(raw.get("content", "")),
        insert_position=AnchorPosition.parse(
            _get(raw, "insert_position", "insertPosition", default="in_chat")
        ),
        insert_depth=int(_get(raw, "insert_depth", "insertDepth", default=0)),
        insert_frequency=int(_get(raw, "insert_frequency", "insertFrequency", default=1)),
    )


def parse_lore_book(items: list[dict[str, Any]]) -> LoreBook:
    """Split a world-lore list into its config mapping and its entries.

    Items carrying both ``keywords`` and ``content`` are entries; the first
    other mapping holds book-wide settings.
    """
    entries = [parse_lore_entry(i) for i in items if "keywords" in i and "content" in i]
    settings = next((i for i in items if not ("keywords" in i and "content" in i)), {})
    return LoreBook(
        entries=entries,
        token_budget=_get(settings, "token_budget", "token_limit", "tokenLimit"),
        scan_depth=_get(settings, "scan_depth", "scanDepth", default=2),
        recursive_scan=_get(settings, "recursive_scan", "recursiveScan", default=True),
        max_recursion_depth=_get(settings, "max_recursion_depth", "maxRecursionDepth", default=3),
        match_whole_word=_get(settings, "match_whole_word", "matchWholeWord", default=False),
        case_sensitive=_get(settings, "case_sensitive", "caseSensitive", default=True),
    )


def load_persona(source: str | Path | dict) -> Persona:
    """Load a persona from a YAML/JSON file path, a YAML string, or a dict."""
    raw = _read(source)
    prompts = raw.get("prompts")
    if not prompts:
        raise ValueError("Persona has no prompts")

    lores = _get(raw, "world_lores", "lore_book")
    note = _get(raw, "authors_note", "author_notes")
    config = raw.get("config") or {}

    return Persona(
        name=str(raw.get("name", "default")),
        messages=[parse_message(p) for p in prompts],
        lore_book=parse_lore_book(lores) if lores else None,
        authors_note=parse_authors_note(note) if note else None,
        long_memory_prompt=_get(config, "long_memory_prompt", "longMemoryPrompt"),
        lore_prompt=_get(config, "lore_books_prompt", "loreBooksPrompt"),
    )


def load_request(source: str | Path | dict) -> AssemblyRequest:
    """Load an AssemblyRequest from a YAML/JSON file path, a YAML string, or a dict."""
    raw = _read(source)
    if "input" not in raw:
        raise ValueError("Request has no input message")

    extra = raw.get("extra_documents") or []
    if extra and not isinstance(extra[0], list):
        extra = [extra]

    note = raw.get("authors_note")
    scratchpad = raw.get("scratchpad")
    if isinstance(scratchpad, list):
        scratchpad = [parse_message(m) for m in scratchpad]
    elif isinstance(scratchpad, dict):
        scratchpad = parse_message(scratchpad)

    return AssemblyRequest(
        input=parse_message(raw["input"]),
        history=[parse_message(m) for m in raw.get("history") or []],
        long_memory=[parse_document(d) for d in raw.get("long_memory") or []],
        knowledge=[parse_document(d) for d in raw.get("knowledge") or []],
        extra_documents=[[parse_document(d) for d in group] for group in extra],
        lore_entries=[parse_lore_entry(e) for e in raw.get("lore_entries") or []],
        authors_note=parse_authors_note(note) if note else None,
        instructions=raw.get("instructions"),
        scratchpad=scratchpad,
        variables=dict(raw.get("variables") or {}),
    )


def message_to_dict(message: Message) -> dict[str, Any]:
    out: dict[str, Any] = {"role": message.role.value, "content": message.content}
    if message.tag is not None:
        out["tag"] = message.tag.value
    if message.name:
        out["name"] = message.name
    return out
