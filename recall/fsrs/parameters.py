"""
FSRS parameter sets.

A parameter set is the 19 weights plus the retention target and interval
bounds. Parameters usually arrive from storage (a JSON weights column), so
from_mapping() is lenient: a missing or non-finite weight is replaced by its
default instead of letting NaN leak into scheduling.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

from recall.fsrs.constants import (
    DEFAULT_DESIRED_RETENTION,
    DEFAULT_WEIGHTS,
    MAXIMUM_INTERVAL_DAYS,
    MINIMUM_INTERVAL_DAYS,
    STABILITY_FLOOR,
    WEIGHT_COUNT,
)

logger = logging.getLogger(__name__)


def _is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _sanitize_weights(raw: Sequence[Any]) -> tuple[float, ...]:
    weights = []
    for index, default in enumerate(DEFAULT_WEIGHTS):
        value = raw[index] if index < len(raw) else None
        if _is_finite_number(value):
            weights.append(float(value))
        else:
            if value is not None:
                logger.warning("FSRS weight w%d=%r is not finite, using default %s", index, value, default)
            weights.append(default)
    return tuple(weights)


@dataclass(frozen=True)
class FSRSParameters:
    """
    Weights w0..w18 plus retention target and interval bounds.

    Bounds used by the memory model:
        S_min = w12, S_max = w13, D_min = w14, D_max = w15
    """
    weights: tuple[float, ...] = field(default=DEFAULT_WEIGHTS)
    desired_retention: float = DEFAULT_DESIRED_RETENTION
    minimum_interval_days: int = MINIMUM_INTERVAL_DAYS
    maximum_interval_days: int = MAXIMUM_INTERVAL_DAYS

    def __post_init__(self):
        # Direct construction gets the same fallbacks as from_mapping()
        object.__setattr__(self, "weights", _sanitize_weights(tuple(self.weights)))

        retention = self.desired_retention
        if not _is_finite_number(retention) or not 0.0 < retention < 1.0:
            logger.warning("Desired retention %r out of range, using %s", retention, DEFAULT_DESIRED_RETENTION)
            object.__setattr__(self, "desired_retention", DEFAULT_DESIRED_RETENTION)

        minimum = self.minimum_interval_days
        if not _is_finite_number(minimum) or minimum < 1:
            minimum = MINIMUM_INTERVAL_DAYS
        maximum = self.maximum_interval_days
        if not _is_finite_number(maximum) or maximum < minimum:
            maximum = MAXIMUM_INTERVAL_DAYS
        object.__setattr__(self, "minimum_interval_days", int(minimum))
        object.__setattr__(self, "maximum_interval_days", int(max(maximum, minimum)))

    def w(self, index: int) -> float:
        return self.weights[index]

    @property
    def s_min(self) -> float:
        return self.weights[12] if self.weights[12] > 0 else STABILITY_FLOOR

    @property
    def s_max(self) -> float:
        return max(self.weights[13], self.s_min)

    @property
    def d_min(self) -> float:
        return self.weights[14]

    @property
    def d_max(self) -> float:
        return max(self.weights[15], self.weights[14])

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "FSRSParameters":
        """
        Build parameters from a stored row.

        Accepts either a flat mapping ({"w0": 0.41, ..., "desired_retention": 0.9})
        or a row with a nested "weights" value that is itself a {"w0": ...}
        mapping or a 19-item list.
        """
        if not data:
            return cls()

        weights_source: Any = data.get("weights", data)
        if isinstance(weights_source, Mapping):
            raw = [weights_source.get(f"w{i}") for i in range(WEIGHT_COUNT)]
        elif isinstance(weights_source, Sequence) and not isinstance(weights_source, (str, bytes)):
            raw = list(weights_source)
        else:
            logger.warning("Unrecognised FSRS weights %r, using defaults", weights_source)
            raw = []

        return cls(
            weights=tuple(raw),
            desired_retention=data.get("desired_retention", DEFAULT_DESIRED_RETENTION),
            minimum_interval_days=data.get("minimum_interval_days", MINIMUM_INTERVAL_DAYS),
            maximum_interval_days=data.get("maximum_interval_days", MAXIMUM_INTERVAL_DAYS),
        )


DEFAULT_PARAMETERS = FSRSParameters()
