"""Signal-detection helpers shared by the go/no-go style tasks.

Outcome classification is a pure function of ``(is_target, responded)``.
Sensitivity (d') uses Acklam's rational approximation of the inverse
standard-normal CDF.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from .cognitive_core import clamp, ratio, round2

RATE_FLOOR = 0.01
RATE_CEIL = 0.99
Z_LIMIT = 3.0

_P_LOW = 0.02425
_P_HIGH = 1.0 - _P_LOW

_A = (
    -3.969683028665376e01,
    2.209460984245205e02,
    -2.759285104469687e02,
    1.383577518672690e02,
    -3.066479806614716e01,
    2.506628277459239e00,
)
_B = (
    -5.447609879822406e01,
    1.615858368580409e02,
    -1.556989798598866e02,
    6.680131188771972e01,
    -1.328068155288572e01,
)
_C = (
    -7.784894002430293e-03,
    -3.223964580411365e-01,
    -2.400758276357352e00,
    -2.549671054282470e00,
    4.374664141464968e00,
    2.938163982698783e00,
)
_D = (
    7.784695709041462e-03,
    3.224671290700398e-01,
    2.445134137142996e00,
    3.754408661907416e00,
)


class Outcome(str, Enum):
    HIT = "hit"
    MISS = "miss"
    FALSE_ALARM = "false_alarm"
    CORRECT_REJECTION = "correct_rejection"

    @property
    def is_correct(self) -> bool:
        return self in (Outcome.HIT, Outcome.CORRECT_REJECTION)


def classify_outcome(*, is_target: bool, responded: bool) -> Outcome:
    if is_target:
        return Outcome.HIT if responded else Outcome.MISS
    return Outcome.FALSE_ALARM if responded else Outcome.CORRECT_REJECTION


@dataclass(frozen=True, slots=True)
class DetectionCounts:
    hits: int = 0
    misses: int = 0
    false_alarms: int = 0
    correct_rejections: int = 0

    @property
    def targets(self) -> int:
        return self.hits + self.misses

    @property
    def non_targets(self) -> int:
        return self.false_alarms + self.correct_rejections

    @property
    def total(self) -> int:
        return self.targets + self.non_targets

    @property
    def correct(self) -> int:
        return self.hits + self.correct_rejections

    @property
    def hit_rate(self) -> float:
        return ratio(self.hits, self.targets)

    @property
    def false_alarm_rate(self) -> float:
        return ratio(self.false_alarms, self.non_targets)


def tally(outcomes: Iterable[Outcome]) -> DetectionCounts:
    hits = misses = false_alarms = correct_rejections = 0
    for outcome in outcomes:
        if outcome is Outcome.HIT:
            hits += 1
        elif outcome is Outcome.MISS:
            misses += 1
        elif outcome is Outcome.FALSE_ALARM:
            false_alarms += 1
        else:
            correct_rejections += 1
    return DetectionCounts(
        hits=hits,
        misses=misses,
        false_alarms=false_alarms,
        correct_rejections=correct_rejections,
    )


def _tail(q: float) -> float:
    num = ((((_C[0] * q + _C[1]) * q + _C[2]) * q + _C[3]) * q + _C[4]) * q + _C[5]
    den = (((_D[0] * q + _D[1]) * q + _D[2]) * q + _D[3]) * q + 1.0
    return num / den


def z_score(p: float) -> float:
    """Inverse standard-normal CDF; saturates at +-3 outside (0, 1)."""

    if p <= 0.0:
        return -Z_LIMIT
    if p >= 1.0:
        return Z_LIMIT

    if p < _P_LOW:
        return _tail(math.sqrt(-2.0 * math.log(p)))
    if p > _P_HIGH:
        return -_tail(math.sqrt(-2.0 * math.log(1.0 - p)))

    q = p - 0.5
    r = q * q
    num = (((((_A[0] * r + _A[1]) * r + _A[2]) * r + _A[3]) * r + _A[4]) * r + _A[5]) * q
    den = ((((_B[0] * r + _B[1]) * r + _B[2]) * r + _B[3]) * r + _B[4]) * r + 1.0
    return num / den


def d_prime(hit_rate: float, false_alarm_rate: float) -> float:
    hr = clamp(hit_rate, RATE_FLOOR, RATE_CEIL)
    far = clamp(false_alarm_rate, RATE_FLOOR, RATE_CEIL)
    return z_score(hr) - z_score(far)


@dataclass(frozen=True, slots=True)
class DetectionRates:
    hit_rate: float
    false_alarm_rate: float
    d_prime: float


def detection_rates(counts: DetectionCounts) -> DetectionRates:
    """Display rates (2 dp); d' is computed from the unrounded rates."""

    return DetectionRates(
        hit_rate=round2(counts.hit_rate),
        false_alarm_rate=round2(counts.false_alarm_rate),
        d_prime=round2(d_prime(counts.hit_rate, counts.false_alarm_rate)),
    )
