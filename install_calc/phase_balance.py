"""
Phase balance for 1-phase loads on a 3-phase supply.

Greedy single pass: every new load goes to the currently least-loaded phase
(ties resolve to the lowest phase number) and the running sum is updated
immediately, so later loads balance against it. Not a global optimum; good
enough for the 20 %/25 % imbalance thresholds used downstream.
"""

from __future__ import annotations

from .models import PHASE_NUMBERS, PhaseLoads, PhaseType


class PhaseLoadTracker:
    """Running per-phase load (W). Local to one calculation call."""

    def __init__(self, supply_phase: PhaseType) -> None:
        self.supply_phase = PhaseType(supply_phase)
        self._sums = {1: 0.0, 2: 0.0, 3: 0.0}

    def least_loaded(self) -> int:
        return least_loaded_phase(self._sums[1], self._sums[2], self._sums[3])

    def assign(self, load_w: float, fixed_phase: int | None = None) -> int:
        """
        Place load_w on a phase and return it. 1-phase supplies always use
        phase 1; an explicit fixed_phase is respected on 3-phase supplies.
        """
        if load_w < 0:
            raise ValueError(f"load must be >= 0, got {load_w}")
        if self.supply_phase == PhaseType.SINGLE:
            phase = 1
        elif fixed_phase is not None:
            if fixed_phase not in PHASE_NUMBERS:
                raise ValueError("fixed_phase must be 1, 2 or 3")
            phase = fixed_phase
        else:
            phase = self.least_loaded()
        self._sums[phase] += load_w
        return phase

    def snapshot(self) -> PhaseLoads:
        return PhaseLoads(
            phase_1_w=self._sums[1],
            phase_2_w=self._sums[2],
            phase_3_w=self._sums[3],
        )


def least_loaded_phase(l1: float, l2: float, l3: float) -> int:
    min_sum = min(l1, l2, l3)
    if l1 == min_sum:
        return 1
    if l2 == min_sum:
        return 2
    return 3


def imbalance_pct(l1: float, l2: float, l3: float) -> float:
    """Max absolute deviation from the 3-phase average, in percent of it."""
    avg = (l1 + l2 + l3) / 3.0
    if avg <= 0:
        return 0.0
    max_dev = max(abs(l1 - avg), abs(l2 - avg), abs(l3 - avg))
    return 100.0 * max_dev / avg
