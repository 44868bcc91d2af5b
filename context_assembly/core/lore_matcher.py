"""LoreMatcher: select lore entries whose keywords appear in recent messages."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from ..types import LoreBook, LoreEntry, Message

logger = logging.getLogger(__name__)

# Latin and CJK sentence punctuation plus whitespace
_WORD_SPLIT = re.compile(r"[。！？；.!?;,，、：\s]+")


@dataclass
class _ScanConfig:
    scan_depth: int
    recursive_scan: bool
    max_recursion_depth: int
    match_whole_word: bool
    case_sensitive: bool


class LoreMatcher:
    """Keyword/regex matching of lore entries against the newest messages.

    Keywords are regular expressions. Entries marked ``constant`` always
    match; disabled entries never do. With recursive scanning, the content of
    a matched entry is itself scanned for further matches, down to
    ``max_recursion_depth`` levels.
    """

    def __init__(self, lore_book: LoreBook) -> None:
        self.lore_book = lore_book
        self._regex_cache: dict[tuple[str, bool, bool], re.Pattern] = {}

    def match(self, messages: list[Message]) -> list[LoreEntry]:
        """Return matched entries sorted by ``order``. ``messages`` is oldest -> newest."""
        newest_first = [m.content for m in reversed(messages)]
        matched: list[LoreEntry] = []
        stack: list[tuple[list[str], int]] = [(newest_first, 0)]

        while stack:
            texts, depth = stack.pop()
            for entry in self.lore_book.entries:
                if not entry.enabled or any(entry is m for m in matched):
                    continue
                config = self._config_for(entry)
                if depth >= config.max_recursion_depth:
                    continue
                if not self._matches(entry, config, texts[:config.scan_depth]):
                    continue
                matched.append(entry)
                if config.recursive_scan:
                    stack.append((self._split(config, entry.content), depth + 1))

        if matched:
            logger.debug("Matched %d lore entries: %s", len(matched), [e.keywords for e in matched])
        return sorted(matched, key=lambda e: e.order)

    def _matches(self, entry: LoreEntry, config: _ScanConfig, texts: list[str]) -> bool:
        if entry.constant:
            return bool(texts)
        for text in texts:
            for part in self._split(config, text):
                if any(self._regex(k, config).search(part) for k in entry.keywords):
                    return True
        return False

    def _config_for(self, entry: LoreEntry) -> _ScanConfig:
        book = self.lore_book
        return _ScanConfig(
            scan_depth=entry.scan_depth if entry.scan_depth is not None else book.scan_depth,
            recursive_scan=(
                entry.recursive_scan if entry.recursive_scan is not None else book.recursive_scan
            ),
            max_recursion_depth=(
                entry.max_recursion_depth
                if entry.max_recursion_depth is not None else book.max_recursion_depth
            ),
            match_whole_word=(
                entry.match_whole_word if entry.match_whole_word is not None else book.match_whole_word
            ),
            case_sensitive=(
                entry.case_sensitive if entry.case_sensitive is not None else book.case_sensitive
            ),
        )

    @staticmethod
    def _split(config: _ScanConfig, content: str) -> list[str]:
        if config.match_whole_word:
            return [p for p in _WORD_SPLIT.split(content) if p]
        return [content]

    def _regex(self, keyword: str, config: _ScanConfig) -> re.Pattern:
        key = (keyword, config.case_sensitive, config.match_whole_word)
        pattern = self._regex_cache.get(key)
        if pattern is None:
            flags = 0 if config.case_sensitive else re.IGNORECASE
            source = rf"\b{keyword}\b" if config.match_whole_word else keyword
            try:
                pattern = re.compile(source, flags)
            except re.error:
                escaped = re.escape(keyword)
                pattern = re.compile(rf"\b{escaped}\b" if config.match_whole_word else escaped, flags)
            self._regex_cache[key] = pattern
        return pattern
