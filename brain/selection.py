"""
Weighted selection helpers.

Pure functions shared by the decision engine and the action handlers:
- redistribute_weights: zero some categories and hand their weight to the
  rest, proportionally, keeping the total unchanged
- normalize_weights: rescale a weight vector to a target total
- weighted_choice: stateless weighted draw given an RNG
- top_k_pick: "usually the best, sometimes one of the runners-up"
"""

import logging
import random
from typing import Dict, Hashable, Iterable, Mapping, Optional, Sequence, Tuple, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar('K', bound=Hashable)
T = TypeVar('T')


def redistribute_weights(weights: Mapping[K, float], blocked: Iterable[K]) -> Dict[K, float]:
    """
    Zero the blocked keys and spread their weight over the remaining keys.

    Remaining keys keep their pairwise ratios and the total is preserved.
    If every remaining key has zero weight the freed weight is split evenly
    among them; if nothing remains, everything is zero.
    """
    blocked = set(blocked)
    total = sum(max(0.0, w) for w in weights.values())
    remaining = {k: max(0.0, w) for k, w in weights.items() if k not in blocked}
    result = {k: 0.0 for k in weights if k in blocked}

    if not remaining:
        return result

    remaining_total = sum(remaining.values())
    if remaining_total > 0:
        factor = total / remaining_total
        result.update({k: w * factor for k, w in remaining.items()})
    else:
        share = total / len(remaining)
        result.update({k: share for k in remaining})
    return result


def normalize_weights(weights: Mapping[K, float], target: float = 100.0) -> Dict[K, float]:
    """Scale non-negative weights so they sum to `target`."""
    clipped = {k: max(0.0, w) for k, w in weights.items()}
    total = sum(clipped.values())
    if total <= 0:
        return clipped
    return {k: w * target / total for k, w in clipped.items()}


def weighted_choice(weights: Mapping[K, float], rng: Optional[random.Random] = None) -> Optional[K]:
    """
    Draw one key with probability proportional to its weight.

    Returns None when no key has positive weight.
    """
    rng = rng or random
    positive = [(k, w) for k, w in weights.items() if w > 0]
    if not positive:
        return None

    total = sum(w for _, w in positive)
    roll = rng.random() * total
    cumulative = 0.0
    for key, weight in positive:
        cumulative += weight
        if roll < cumulative:
            return key
    return positive[-1][0]


def top_k_pick(candidates: Sequence[Tuple[T, float]], k: int = 2,
               exploration: float = 0.2,
               rng: Optional[random.Random] = None) -> Optional[T]:
    """
    Pick from scored candidates: the best with probability 1 - exploration,
    otherwise a score-weighted pick among ranks 2..k.

    With k=2 and exploration=0.2 this is the classic 80% best / 20%
    second-best rule.
    """
    rng = rng or random
    if not candidates:
        return None

    ranked = sorted(candidates, key=lambda c: c[1], reverse=True)
    runners_up = ranked[1:max(1, k)]
    if not runners_up or rng.random() >= exploration:
        return ranked[0][0]

    pick = weighted_choice({i: max(score, 0.0) for i, (_, score) in enumerate(runners_up)}, rng)
    if pick is None:
        pick = rng.randrange(len(runners_up))
    logger.debug(f"Exploration pick: {runners_up[pick][0]} over {ranked[0][0]}")
    return runners_up[pick][0]
