"""BudgetTracker: running token usage for a single assembly call."""

from __future__ import annotations


class BudgetTracker:
    """Charge-only token accounting against a fixed limit.

    There is no release: an inclusion decision is never revisited, so tokens
    once charged stay charged for the rest of the call.
    """

    def __init__(self, limit: int, usage: int = 0) -> None:
        self.limit = limit
        self.usage = usage
        self.breakdown: dict[str, int] = {}

    def remaining(self, reserved_margin: int = 0) -> int:
        return self.limit - reserved_margin - self.usage

    def fits(self, tokens: int, reserved_margin: int = 0) -> bool:
        return self.usage + tokens <= self.limit - reserved_margin

    def overflow(self, tokens: int, reserved_margin: int = 0) -> int:
        """How many tokens past the margin-adjusted limit ``tokens`` would land."""
        return self.usage + tokens - (self.limit - reserved_margin)

    def charge(self, tokens: int, stage: str = "other") -> int:
        if tokens < 0:
            raise ValueError(f"Cannot charge negative tokens: {tokens}")
        self.usage += tokens
        self.breakdown[stage] = self.breakdown.get(stage, 0) + tokens
        return self.usage
