"""
Session builders - card pools and ordering.

- pool_utils: payload -> session card conversion and pool assembly
- shuffle: seeded deterministic shuffle
"""

from recall.session_builders.pool_utils import (
    build_session_cards,
    due_cards_from_snapshot,
    fill_in_order,
    new_cards_from_snapshot,
    progress_from_payload,
)
from recall.session_builders.shuffle import (
    deterministic_shuffle,
    hash_seed,
    random_shuffle,
    shuffle,
)


__all__ = [
    # Pools
    "build_session_cards",
    "due_cards_from_snapshot",
    "fill_in_order",
    "new_cards_from_snapshot",
    "progress_from_payload",

    # Ordering
    "deterministic_shuffle",
    "hash_seed",
    "random_shuffle",
    "shuffle",
]
