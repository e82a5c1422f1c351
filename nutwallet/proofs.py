"""
Helpers over proof sets: totals and coin selection.

``Wallet.send`` itself uses the simple greedy prefix of its input; these
helpers let a caller pick a better input first, either an exact match
(no split round trip needed) or a cover with little excess.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from .models import Proof

log = logging.getLogger(__name__)

MAX_SEARCH_DEPTH = 1000


def sum_proofs(proofs: Iterable[Proof]) -> int:
    return sum(p.amount for p in proofs)


def find_exact_match(amount: int, proofs: Sequence[Proof]) -> Optional[List[Proof]]:
    """
    Subset of *proofs* summing to exactly *amount*, or None.

    Depth-first search over proofs sorted largest first, memoising
    dead (index, remaining) states.
    """
    ordered = sorted(proofs, key=lambda p: p.amount, reverse=True)
    chosen: List[Proof] = []
    dead: Set[Tuple[int, int]] = set()

    def search(start: int, remaining: int, depth: int) -> bool:
        if remaining == 0:
            return True
        if depth > MAX_SEARCH_DEPTH:
            log.warning("exact match search hit depth limit")
            return False
        if (start, remaining) in dead:
            return False
        for i in range(start, len(ordered)):
            if ordered[i].amount > remaining:
                continue
            chosen.append(ordered[i])
            if search(i + 1, remaining - ordered[i].amount, depth + 1):
                return True
            chosen.pop()
        dead.add((start, remaining))
        return False

    if amount < 0:
        return None
    return list(chosen) if search(0, amount, 0) else None


def find_min_excess(
    amount: int,
    proofs: Sequence[Proof],
    prefer_small: bool = True,
) -> List[Proof]:
    """
    Greedy cover of *amount*.

    Proofs are taken smallest first (or largest first) until the total
    reaches *amount*.  Returns all proofs when they cannot cover it.
    """
    ordered = sorted(proofs, key=lambda p: p.amount, reverse=not prefer_small)
    selected: List[Proof] = []
    total = 0
    for proof in ordered:
        if total >= amount:
            break
        selected.append(proof)
        total += proof.amount
    return selected
