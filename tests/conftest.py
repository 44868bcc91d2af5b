"""Shared fixtures for context-assembly tests."""

from __future__ import annotations

import pytest

from context_assembly.templates import FormatTemplateRenderer
from context_assembly.token_counter import as_async_counter
from context_assembly.types import AnchorTag, Message, Persona, Role


def word_count(text: str) -> int:
    """One token per whitespace-separated word; role labels cost 1."""
    return len(text.split())


def words(n: int, word: str = "w") -> str:
    return " ".join([word] * n)


@pytest.fixture
def counter():
    return as_async_counter(word_count)


@pytest.fixture
def renderer() -> FormatTemplateRenderer:
    return FormatTemplateRenderer()


@pytest.fixture
def persona() -> Persona:
    return Persona(
        name="aria",
        messages=[
            Message(role=Role.SYSTEM, content="You are {char}, a ship's navigator."),
            Message(role=Role.SYSTEM, content="Aria is calm and precise.", tag=AnchorTag.DESCRIPTION),
            Message(role=Role.SYSTEM, content="They sail the northern sea.", tag=AnchorTag.SCENARIO),
            Message(role=Role.USER, content="Where are we?", tag=AnchorTag.EXAMPLE_FIRST),
            Message(role=Role.ASSISTANT, content="Two days out of port.", tag=AnchorTag.EXAMPLE_LAST),
            Message(role=Role.ASSISTANT, content="Welcome aboard, {user}.", tag=AnchorTag.FIRST_MESSAGE),
        ],
    )


@pytest.fixture
def history() -> list[Message]:
    return [
        Message(role=Role.USER, content="first question"),
        Message(role=Role.ASSISTANT, content="first answer"),
        Message(role=Role.USER, content="second question"),
        Message(role=Role.ASSISTANT, content="second answer"),
    ]
