"""
Denomination splitting.

Every proof carries a power-of-two amount, so an amount is paid out as a
multiset of powers of two.  By default that multiset is the binary
representation of the amount, which minimises the number of proofs.

A caller may instead ask for specific denominations with a list of
``AmountPreference(amount, count)`` pairs.  The rule used here:

1. Preference units are taken in the order given, one at a time, as
   long as the running total does not exceed the target.  A unit that
   would overshoot is skipped.
2. The remaining shortfall (target minus what the preference covered)
   is filled with its binary decomposition.

So the result always sums to the target exactly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from .errors import ValidationError
from .models import is_power_of_two


@dataclass(frozen=True)
class AmountPreference:
    amount: int
    count: int


def _binary_split(amount: int) -> List[int]:
    """Powers of two in ``amount``'s binary representation, ascending."""
    chunks = []
    bit = 0
    while amount >> bit:
        if (amount >> bit) & 1:
            chunks.append(1 << bit)
        bit += 1
    return chunks


def get_preference(
    amount: int,
    preference: Sequence[AmountPreference],
) -> List[int]:
    """Expand *preference* into units without exceeding *amount*."""
    chunks: List[int] = []
    total = 0
    for pref in preference:
        if not is_power_of_two(pref.amount):
            raise ValidationError(
                "amount preferences must be powers of two, "
                f"got {pref.amount}"
            )
        if pref.count < 0:
            raise ValidationError(f"negative preference count {pref.count}")
        for _ in range(pref.count):
            if total + pref.amount > amount:
                break
            total += pref.amount
            chunks.append(pref.amount)
    return chunks


def split_amount(
    amount: int,
    preference: Optional[Sequence[AmountPreference]] = None,
) -> List[int]:
    """
    Ordered list of denominations summing to *amount*.

    Preferred denominations come first, followed by the binary
    decomposition of whatever they leave uncovered.
    """
    if amount < 0:
        raise ValidationError(f"cannot split negative amount {amount}")
    chunks: List[int] = []
    if preference:
        chunks.extend(get_preference(amount, preference))
    chunks.extend(_binary_split(amount - sum(chunks)))
    return chunks


def default_amount_preference(amount: int) -> List[AmountPreference]:
    return [AmountPreference(amount=a, count=1) for a in split_amount(amount)]


def blank_output_count(fee_reserve: int) -> int:
    """
    Number of blank outputs for fee change (NUT-08).

    ``max(ceil(log2(fee_reserve)), 1)``.  A zero reserve still gets one
    output, so a melt always carries at least one blank output.
    """
    if fee_reserve < 0:
        raise ValidationError(f"fee reserve cannot be negative: {fee_reserve}")
    # ceil(log2(n)) == (n - 1).bit_length() for n >= 1
    return max((fee_reserve - 1).bit_length(), 1)
