from __future__ import annotations

from typing import Dict, Optional, Sequence

import numpy as np


def shuffled_order(beer_ids: Sequence[str], rng: Optional[np.random.Generator] = None) -> Dict[str, int]:
    """
    Assign each beer a unique zero-based tasting position.

    Every id gets an independent uniform random key and the ids are sorted by
    that key. Each call draws fresh keys, so repeated calls give independent
    permutations.
    """
    rng = rng or np.random.default_rng()
    ids = list(dict.fromkeys(beer_ids))
    keys = rng.random(len(ids))
    order = np.argsort(keys, kind="mergesort")
    return {ids[int(i)]: position for position, i in enumerate(order)}
