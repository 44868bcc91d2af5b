"""Tests for DocumentFolder."""

import logging

import pytest

from conftest import words
from context_assembly.core.budget import BudgetTracker
from context_assembly.core.documents import DocumentFolder, format_document
from context_assembly.templates import DEFAULT_LONG_MEMORY_PROMPT
from context_assembly.types import Document, Role


@pytest.fixture
def folder(counter, renderer):
    return DocumentFolder(counter, renderer, margin=0)


def test_format_document_serializes_metadata():
    doc = Document(text="likes tea", metadata={"source": "chat", "score": 0.9})
    assert format_document(doc) == 'likes tea metadata: {"source": "chat", "score": 0.9}'


@pytest.mark.asyncio
async def test_fold_into_single_system_message(folder):
    tracker = BudgetTracker(limit=100)
    docs = [Document(text="likes tea"), Document(text="lives in Oslo", metadata={"id": 2})]
    message = await folder.fold(docs, tracker, template="Memory:\n{long_history}")
    assert message.role == Role.SYSTEM
    assert message.content == 'Memory:\nlikes tea metadata: {}\nlives in Oslo metadata: {"id": 2}'
    assert tracker.usage == 5
    assert tracker.breakdown == {"documents": 5}


@pytest.mark.asyncio
async def test_default_template(folder):
    message = await folder.fold([Document(text="fact")], BudgetTracker(limit=100))
    assert message.content.startswith("Relevant context: fact metadata: {}")
    assert "Guidelines for response" in DEFAULT_LONG_MEMORY_PROMPT


@pytest.mark.asyncio
async def test_empty_documents_skipped(folder):
    tracker = BudgetTracker(limit=100)
    message = await folder.fold([Document(text=""), Document(text="kept")], tracker, template="{long_history}")
    assert message.content == "kept metadata: {}"
    assert tracker.usage == 1


@pytest.mark.asyncio
async def test_stop_at_first_miss(folder):
    tracker = BudgetTracker(limit=10)
    docs = [Document(text="one"), Document(text=words(20)), Document(text="three")]
    message = await folder.fold(docs, tracker, template="{long_history}")
    assert message.content == "one metadata: {}"
    assert tracker.usage == 1


@pytest.mark.asyncio
async def test_nothing_fits_returns_none(folder):
    tracker = BudgetTracker(limit=3)
    assert await folder.fold([Document(text=words(5))], tracker) is None
    assert await folder.fold([], tracker) is None
    assert tracker.usage == 0


@pytest.mark.asyncio
async def test_margin_is_reserved(counter, renderer):
    folder = DocumentFolder(counter, renderer)
    tracker = BudgetTracker(limit=100)
    assert await folder.fold([Document(text=words(21))], tracker) is None
    assert await folder.fold([Document(text=words(20))], tracker) is not None


@pytest.mark.asyncio
async def test_overflow_logged_with_stage_and_delta(folder, caplog):
    tracker = BudgetTracker(limit=10)
    docs = [
        Document(text="one"),
        Document(text=""),
        Document(text=words(20)),
        Document(text=""),
        Document(text="three"),
    ]
    with caplog.at_level(logging.DEBUG, logger="context_assembly.core.documents"):
        await folder.fold(docs, tracker, template="{long_history}")
    messages = [r.getMessage() for r in caplog.records if r.name == "context_assembly.core.documents"]
    # usage 1 + 20 tokens against limit 10; the two empty documents are not counted
    assert messages == ["documents: dropping 2 document(s), next would overflow by 11 tokens"]
