"""Hint generation policies.

A policy looks at what the player already knows and produces a hint that
narrows the search without stating the secret number.  The store only
decides *when* a hint is due; policies decide *what* it says and can be
swapped per store.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from .rules import known_bounds


@dataclass(frozen=True)
class HintContext:
    """Snapshot of a game handed to a hint policy."""
    secret_number: int
    min_range: int
    max_range: int
    attempts: List[Tuple[int, str]] = field(default_factory=list)
    hints_used: int = 0


@dataclass(frozen=True)
class HintDraft:
    hint_text: str
    hint_type: str


class HintPolicy:
    """Base class for hint policies."""

    def build(self, context: HintContext) -> Optional[HintDraft]:
        raise NotImplementedError


class RangeHintPolicy(HintPolicy):
    """Halve the range the player has already narrowed the secret to.

    Falls back to the known range when halving would leave a single value,
    and gives up when even that is a single value.
    """

    def build(self, context: HintContext) -> Optional[HintDraft]:
        low, high = known_bounds(context.min_range, context.max_range, context.attempts)
        if low >= high:
            return None

        mid = (low + high) // 2
        if context.secret_number <= mid:
            half = (low, mid)
        else:
            half = (mid + 1, high)
        if half[0] < half[1]:
            low, high = half

        return HintDraft(
            hint_text=f"The number is between {low} and {high}.",
            hint_type="range",
        )


class ParityHintPolicy(HintPolicy):
    """Say whether the number is even or odd.

    Silent when no other number of the same parity is left in the range
    the player has narrowed to, since the hint would single out the secret.
    """

    def build(self, context: HintContext) -> Optional[HintDraft]:
        low, high = known_bounds(context.min_range, context.max_range, context.attempts)
        secret = context.secret_number
        if secret - 2 < low and secret + 2 > high:
            return None
        parity = "even" if context.secret_number % 2 == 0 else "odd"
        return HintDraft(hint_text=f"The number is {parity}.", hint_type="parity")


class AlternatingHintPolicy(HintPolicy):
    """Cycle through policies, one per hint already used.

    If the policy whose turn it is has nothing to offer, the next ones are
    tried in order.
    """

    def __init__(self, policies: Optional[Sequence[HintPolicy]] = None):
        self.policies = list(policies or (RangeHintPolicy(), ParityHintPolicy()))

    def build(self, context: HintContext) -> Optional[HintDraft]:
        count = len(self.policies)
        start = context.hints_used % count
        for offset in range(count):
            draft = self.policies[(start + offset) % count].build(context)
            if draft is not None:
                return draft
        return None
