"""
Combo synthesis.
Builds a weighted composite return series from constituent return series.

Policy: fixed target weights, rebalanced every period. On each date the
weights of constituents with a defined return are renormalized to sum
to 1; constituents without a return that date are left out.

A date is undefined when the weights still available that date sum to
zero or take the opposite sign of the full active total, so a missing
long leg never turns a short leg into a long position.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Mapping, Optional

from analysis.calculations.returns import ReturnSeries
from analysis.calculations.statistics import ZERO_TOLERANCE


logger = logging.getLogger(__name__)

DEFAULT_COMBO_ID = 'COMBO'


class ComboError(Exception):
    """Raised when combo synthesis fails."""
    pass


class NoActiveConstituentsError(ComboError):
    """Raised when no enabled constituent carries a usable weight."""
    pass


@dataclass(frozen=True)
class ComboDefinition:
    """Target weights plus the set of constituents switched on."""
    weights: Mapping[str, float] = field(default_factory=dict)
    enabled: FrozenSet[str] = frozenset()
    combo_id: str = DEFAULT_COMBO_ID

    def __post_init__(self):
        object.__setattr__(self, 'weights', {k: float(v) for k, v in self.weights.items()})
        object.__setattr__(self, 'enabled', frozenset(self.enabled))

        for k, w in self.weights.items():
            if not math.isfinite(w):
                raise ComboError(f"weight for {k} must be finite, got {w}")

    def active_weights(self) -> Dict[str, float]:
        """Enabled constituents with a non-zero weight."""
        return {
            k: w for k, w in self.weights.items()
            if k in self.enabled and w != 0
        }

    def normalized_weights(self) -> Dict[str, float]:
        """Active weights scaled to sum to 1."""
        active = self.active_weights()
        total = sum(active.values())
        if not active or abs(total) < ZERO_TOLERANCE:
            raise NoActiveConstituentsError("No enabled constituent with a usable weight")
        return {k: w / total for k, w in active.items()}

    @property
    def is_active(self) -> bool:
        return bool(self.active_weights())

    def with_weight(self, instrument_id: str, weight: float) -> 'ComboDefinition':
        weights = dict(self.weights)
        weights[instrument_id] = weight
        return ComboDefinition(weights=weights, enabled=self.enabled, combo_id=self.combo_id)

    def toggled(self, instrument_id: str) -> 'ComboDefinition':
        enabled = set(self.enabled)
        if instrument_id in enabled:
            enabled.remove(instrument_id)
        else:
            enabled.add(instrument_id)
        return ComboDefinition(weights=self.weights, enabled=frozenset(enabled), combo_id=self.combo_id)


def synthesize_combo(
    definition: ComboDefinition,
    returns: Mapping[str, ReturnSeries]
) -> ReturnSeries:
    """
    Combine constituent returns into one weighted return series.

    Args:
        definition: Weights and enabled set
        returns: Constituent return series keyed by id, all on one axis

    Returns:
        ReturnSeries with id `definition.combo_id`

    Raises:
        NoActiveConstituentsError: If nothing enabled carries weight, or the
            active weights sum to zero
        ComboError: If constituents are not on the same date axis
    """
    active = definition.active_weights()
    unknown = [k for k in active if k not in returns]
    if unknown:
        logger.warning(f"Combo constituents without data ignored: {unknown}")
        active = {k: w for k, w in active.items() if k in returns}

    if not active:
        raise NoActiveConstituentsError(
            f"Combo {definition.combo_id} has no enabled constituent with non-zero weight"
        )

    total = sum(active.values())
    if abs(total) < ZERO_TOLERANCE:
        raise NoActiveConstituentsError(
            f"Combo {definition.combo_id} weights sum to zero over {sorted(active)}"
        )

    members = [returns[k] for k in active]
    dates = members[0].dates
    for m in members[1:]:
        if m.dates != dates:
            raise ComboError(f"{m.id} is not aligned to the same date axis as {members[0].id}")

    simple: List[Optional[float]] = []
    log: List[Optional[float]] = []
    for i in range(len(dates) - 1):
        weighted = 0.0
        weight_sum = 0.0
        for k, w in active.items():
            r = returns[k].simple[i]
            if r is None:
                continue
            weighted += w * r
            weight_sum += w

        if abs(weight_sum) < ZERO_TOLERANCE or (weight_sum > 0) != (total > 0):
            simple.append(None)
            log.append(None)
            continue

        r_combo = weighted / weight_sum
        simple.append(r_combo)
        log.append(math.log1p(r_combo) if r_combo > -1 else None)

    observed = tuple(
        any(returns[k].observed[i] for k in active)
        for i in range(len(dates))
    )

    logger.debug(
        f"Combo {definition.combo_id}: {len(active)} constituents, "
        f"{sum(1 for r in simple if r is not None)} defined returns"
    )
    return ReturnSeries(
        id=definition.combo_id,
        dates=dates,
        observed=observed,
        simple=tuple(simple),
        log=tuple(log),
    )
