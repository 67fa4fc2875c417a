"""
Blending Engine
===============

Merges the seed-similarity pool and the context (mood/activity) pool into one
ordered candidate list. The merge is fully deterministic: the same pools,
ratio and target always give the same output.
"""

from __future__ import annotations

import logging
import math
from typing import List, Sequence, Set, Tuple

from ..models import Candidate

logger = logging.getLogger(__name__)


def split_counts(total_target: int, ratio: float) -> Tuple[int, int]:
    """Slots reserved for the seed pool and the context pool.

    The seed share is rounded half-up (2.5 -> 3), so with an odd target and
    ratio 0.5 the seed pool gets the extra slot.
    """
    if total_target <= 0:
        return 0, 0
    seed_count = int(math.floor(total_target * ratio + 0.5))
    seed_count = max(0, min(total_target, seed_count))
    return seed_count, total_target - seed_count


def seed_pool_needed(ratio: float) -> bool:
    """The seed-similarity pool is only fetched when it gets any slots."""
    return ratio > 0.0


def context_pool_needed(ratio: float) -> bool:
    return ratio < 1.0


def _interleave(first: Sequence[Candidate], second: Sequence[Candidate]) -> List[Candidate]:
    merged: List[Candidate] = []
    for index in range(max(len(first), len(second))):
        if index < len(first):
            merged.append(first[index])
        if index < len(second):
            merged.append(second[index])
    return merged


def blend_pools(
    seed_pool: Sequence[Candidate],
    context_pool: Sequence[Candidate],
    ratio: float,
    total_target: int,
) -> List[Candidate]:
    """Blend two ranked candidate pools according to ratio.

    1. Split total_target into seed/context counts (see split_counts). When a
       pool is too small, its unused slots move to the other pool, so an
       empty pool means the other one supplies everything.
    2. Take the head of each pool, preserving its internal order.
    3. Interleave seed, context, seed, ...; the longer slice's remainder is
       appended in order.
    4. Drop later candidates whose canonical artist key was already seen.
    5. If de-duplication left free slots, fill them from the unused tails of
       the seed pool, then of the context pool.

    Args:
        seed_pool: Candidates derived from similarity to the seeds, best first
        context_pool: Candidates from the context provider, best first
        ratio: Fraction of slots reserved for the seed pool (0.0 - 1.0)
        total_target: Maximum number of candidates returned

    Returns:
        Blended candidates, unique by artist key, at most total_target long
    """
    if not 0.0 <= ratio <= 1.0:
        raise ValueError(f"ratio must be within [0, 1], got {ratio!r}")

    seed_count, context_count = split_counts(total_target, ratio)

    seed_shortfall = max(0, seed_count - len(seed_pool))
    context_shortfall = max(0, context_count - len(context_pool))
    seed_count = seed_count - seed_shortfall + context_shortfall
    context_count = context_count - context_shortfall + seed_shortfall
    seed_count = min(seed_count, len(seed_pool))
    context_count = min(context_count, len(context_pool))

    merged = _interleave(seed_pool[:seed_count], context_pool[:context_count])

    blended: List[Candidate] = []
    seen: Set[str] = set()
    for candidate in merged:
        key = candidate.artist_key
        if key in seen:
            continue
        seen.add(key)
        blended.append(candidate)

    leftovers = list(seed_pool[seed_count:]) + list(context_pool[context_count:])
    for candidate in leftovers:
        if len(blended) >= total_target:
            break
        key = candidate.artist_key
        if key in seen:
            continue
        seen.add(key)
        blended.append(candidate)

    blended = blended[:max(0, total_target)]
    logger.debug(
        f"Blended {len(blended)} candidates (ratio={ratio:.2f}, target={total_target}, "
        f"seed={seed_count}/{len(seed_pool)}, context={context_count}/{len(context_pool)})"
    )
    return blended
