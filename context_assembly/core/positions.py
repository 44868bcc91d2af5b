"""PositionResolver: map symbolic anchors to indices in a message sequence."""

from __future__ import annotations

from ..types import AnchorPosition, AnchorTag, Message


def _first_index(sequence: list[Message], tag: AnchorTag) -> int:
    for i, message in enumerate(sequence):
        if message.tag == tag:
            return i
    return -1


class PositionResolver:
    """Resolve an AnchorPosition against the tags present in a sequence.

    Lookup is pure: the same tagged sequence always resolves to the same
    index, and the result is clamped to ``[0, len(sequence)]`` so it can be
    passed straight to ``list.insert``.

    ``system_block_size`` is the number of persona messages rendered for this
    call; it drives the fallbacks when no anchor tags exist.
    """

    def __init__(self, system_block_size: int = 0) -> None:
        self.system_block_size = system_block_size

    def resolve(self, sequence: list[Message], position: AnchorPosition) -> int:
        return self.clamp(sequence, self._raw_index(sequence, position))

    @staticmethod
    def clamp(sequence: list[Message], index: int) -> int:
        return max(0, min(index, len(sequence)))

    def _raw_index(self, sequence: list[Message], position: AnchorPosition) -> int:
        if position == AnchorPosition.IN_CHAT:
            return len(sequence) - 1

        char_def = max(
            _first_index(sequence, AnchorTag.DESCRIPTION),
            _first_index(sequence, AnchorTag.PERSONALITY),
        )

        if position == AnchorPosition.BEFORE_CHAR_DEFS:
            return char_def if char_def != -1 else 1

        if position == AnchorPosition.AFTER_CHAR_DEFS:
            return self._after_char_defs(sequence, char_def)

        if position == AnchorPosition.BEFORE_EXAMPLE_MESSAGES:
            example_first = _first_index(sequence, AnchorTag.EXAMPLE_FIRST)
            if example_first != -1:
                return example_first
            first_message = _first_index(sequence, AnchorTag.FIRST_MESSAGE)
            if first_message != -1:
                return first_message
            return self._after_char_defs(sequence, char_def)

        if position == AnchorPosition.AFTER_EXAMPLE_MESSAGES:
            example_last = _first_index(sequence, AnchorTag.EXAMPLE_LAST)
            if example_last != -1:
                return example_last + 1
            return self.system_block_size - 1

        return 1

    def _after_char_defs(self, sequence: list[Message], char_def: int) -> int:
        scenario = _first_index(sequence, AnchorTag.SCENARIO)
        if scenario != -1:
            return scenario + 1
        if char_def != -1:
            return char_def + 1
        return self.system_block_size + 1
