"""Tests for LoreMatcher keyword selection."""

from context_assembly.core.lore_matcher import LoreMatcher
from context_assembly.types import LoreBook, LoreEntry, Message, Role


def _msgs(*contents: str) -> list[Message]:
    return [Message(role=Role.USER, content=c) for c in contents]


def test_matches_keyword_in_recent_messages():
    dragon = LoreEntry(content="Dragons nest in the peaks.", keywords=["dragon"])
    sea = LoreEntry(content="The sea is cold.", keywords=["sea"])
    matcher = LoreMatcher(LoreBook(entries=[dragon, sea], recursive_scan=False))
    assert matcher.match(_msgs("hello", "tell me about the dragon")) == [dragon]


def test_scan_depth_limits_lookback():
    dragon = LoreEntry(content="Dragons nest in the peaks.", keywords=["dragon"])
    matcher = LoreMatcher(LoreBook(entries=[dragon], scan_depth=2, recursive_scan=False))
    assert matcher.match(_msgs("a dragon!", "unrelated", "also unrelated")) == []
    assert matcher.match(_msgs("a dragon!", "unrelated")) == [dragon]


def test_constant_and_disabled_entries():
    always = LoreEntry(content="The year is 1820.", keywords=[], constant=True)
    off = LoreEntry(content="Hidden.", keywords=["hello"], enabled=False)
    matcher = LoreMatcher(LoreBook(entries=[always, off]))
    assert matcher.match(_msgs("hello")) == [always]


def test_case_sensitivity():
    entry = LoreEntry(content="x", keywords=["Aria"])
    assert LoreMatcher(LoreBook(entries=[entry])).match(_msgs("aria says hi")) == []
    insensitive = LoreMatcher(LoreBook(entries=[entry], case_sensitive=False))
    assert insensitive.match(_msgs("aria says hi")) == [entry]


def test_whole_word_matching():
    entry = LoreEntry(content="x", keywords=["sea"], match_whole_word=True)
    matcher = LoreMatcher(LoreBook(entries=[entry], recursive_scan=False))
    assert matcher.match(_msgs("we searched everywhere")) == []
    assert matcher.match(_msgs("across the sea, far away")) == [entry]


def test_recursive_scan_follows_entry_content():
    castle = LoreEntry(content="The castle is guarded by a dragon.", keywords=["castle"], order=1)
    dragon = LoreEntry(content="Dragons breathe fire.", keywords=["dragon"], order=0)
    matcher = LoreMatcher(LoreBook(entries=[castle, dragon]))
    assert matcher.match(_msgs("go to the castle")) == [dragon, castle]

    flat = LoreMatcher(LoreBook(entries=[castle, dragon], recursive_scan=False))
    assert flat.match(_msgs("go to the castle")) == [castle]


def test_recursion_depth_bound():
    a = LoreEntry(content="mentions beta", keywords=["alpha"])
    b = LoreEntry(content="mentions gamma", keywords=["beta"])
    c = LoreEntry(content="end", keywords=["gamma"])
    matcher = LoreMatcher(LoreBook(entries=[a, b, c], max_recursion_depth=2))
    assert matcher.match(_msgs("alpha")) == [a, b]


def test_invalid_regex_keyword_matches_literally():
    entry = LoreEntry(content="x", keywords=["c++ ("])
    matcher = LoreMatcher(LoreBook(entries=[entry], recursive_scan=False))
    assert matcher.match(_msgs("I write c++ (sometimes)")) == [entry]
