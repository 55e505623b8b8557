"""
Commit count distributions.

Each strategy is a small dataclass carrying its own parameters; ``generate``
dispatches on the strategy type and turns a horizon of calendar days into one
``DayPlan`` per day. Messages are filled in later by ``fakeit.messages``.
"""

import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional, Union

from .errors import GenerationError
from .rng import SeededRandom

ACTIVE_DAY_PROBABILITY = 0.7

# Monday-first, weekends downweighted
DEFAULT_WEEKDAY_WEIGHTS = [0.8, 0.9, 0.9, 0.9, 0.8, 0.4, 0.3]


@dataclass
class DayPlan:
    """Planned commits for a single calendar day."""

    date: date
    count: int
    messages: List[str] = field(default_factory=list)


Plan = List[DayPlan]


@dataclass(frozen=True)
class Uniform:
    """Every day is active with 1..max_per_day commits."""

    max_per_day: int


@dataclass(frozen=True)
class WeightedRandom:
    """70% active days, counts skewed towards the low end."""

    max_per_day: int


@dataclass(frozen=True)
class Gaussian:
    """Bell curve over the horizon; mean and std_dev are ratios of its length."""

    max_per_day: int
    mean: float = 0.5
    std_dev: float = 0.2


@dataclass(frozen=True)
class Custom:
    """Explicit repeating pattern, or Monday-first weekday weights."""

    max_per_day: int
    pattern: Optional[List[int]] = None
    weights: Optional[List[float]] = None


Strategy = Union[Uniform, WeightedRandom, Gaussian, Custom]


def date_range(start: date, end: date) -> List[date]:
    """Return every day from start to end inclusive."""
    if start > end:
        raise GenerationError(
            f"Invalid date range: start date {start} is after end date {end}"
        )

    days = []
    current = start
    while current <= end:
        days.append(current)
        current += timedelta(days=1)
    return days


def clamp_count(count: int, max_per_day: int) -> int:
    """Clamp a raw count into [0, max_per_day]."""
    return max(0, min(count, max_per_day))


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def generate(strategy: Strategy, days: List[date], rng: SeededRandom) -> Plan:
    """Generate a plan for the given horizon using the strategy."""
    if strategy.max_per_day < 1:
        raise GenerationError("max_per_day must be at least 1")

    if isinstance(strategy, Uniform):
        counts = _uniform(strategy, days, rng)
    elif isinstance(strategy, WeightedRandom):
        counts = _weighted_random(strategy, days, rng)
    elif isinstance(strategy, Gaussian):
        counts = _gaussian(strategy, days, rng)
    elif isinstance(strategy, Custom):
        counts = _custom(strategy, days, rng)
    else:
        raise GenerationError(f"Unknown distribution strategy: {strategy!r}")

    return [
        DayPlan(date=day, count=clamp_count(count, strategy.max_per_day))
        for day, count in zip(days, counts)
    ]


def _uniform(strategy: Uniform, days: List[date], rng: SeededRandom) -> List[int]:
    return [rng.next_int(1, strategy.max_per_day + 1) for _ in days]


def _weighted_random(
    strategy: WeightedRandom, days: List[date], rng: SeededRandom
) -> List[int]:
    max_per_day = strategy.max_per_day
    counts = []

    for _ in days:
        if rng.next_float() >= ACTIVE_DAY_PROBABILITY:
            counts.append(0)
            continue

        band = rng.next_float()
        if band < 0.5:
            count = rng.next_int(1, min(4, max_per_day + 1))
        elif band < 0.8:
            low = min(4, max_per_day)
            count = rng.next_int(low, max(low + 1, min(8, max_per_day + 1)))
        else:
            low = min(8, max_per_day)
            count = rng.next_int(low, max(low + 1, max_per_day + 1))
        counts.append(count)

    return counts


def _gaussian(strategy: Gaussian, days: List[date], rng: SeededRandom) -> List[int]:
    total_days = len(days)
    mean_day = strategy.mean * total_days
    spread = strategy.std_dev * total_days
    peak_day = min(int(mean_day), total_days - 1)
    counts = []

    for i in range(total_days):
        if spread > 0:
            distance = abs(i - mean_day) / spread
            probability = math.exp(-0.5 * distance * distance)
        else:
            probability = 1.0 if i == peak_day else 0.0

        base = probability * strategy.max_per_day
        jitter = rng.next_gaussian(0, base * 0.3)
        counts.append(max(0, _round_half_up(base + jitter)))

    return counts


def _custom(strategy: Custom, days: List[date], rng: SeededRandom) -> List[int]:
    if strategy.pattern:
        pattern = strategy.pattern
        return [max(0, pattern[i % len(pattern)]) for i in range(len(days))]

    weights = strategy.weights or DEFAULT_WEEKDAY_WEIGHTS
    if len(weights) != 7:
        raise GenerationError(f"weekday weights need 7 values, got {len(weights)}")

    counts = []
    for day in days:
        base = math.floor(strategy.max_per_day * weights[day.weekday()])
        variance = math.floor(base * 0.3)
        counts.append(max(0, base + rng.next_int(-variance, variance + 1)))
    return counts
