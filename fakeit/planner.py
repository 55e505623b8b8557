"""
Plan assembly: configuration -> distribution -> messages.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import List

from .config import Config
from .distributions import (
    Custom,
    Gaussian,
    Plan,
    Strategy,
    Uniform,
    WeightedRandom,
    date_range,
    generate,
)
from .errors import GenerationError
from .messages import populate_messages
from .patterns import PatternSpec, pattern_counts
from .rng import SeededRandom

logger = logging.getLogger(__name__)

# Weekday-heavy weights used by the "custom" distribution (Mon-Sun)
CUSTOM_WEEKDAY_WEIGHTS = [0.8, 1.0, 1.0, 1.0, 0.8, 0.3, 0.2]


@dataclass(frozen=True)
class PlanStats:
    total_commits: int
    total_days: int
    active_days: int
    average_per_active_day: float
    max_per_day: int
    min_per_day: int


def build_strategy(config: Config, days: List[date]) -> Strategy:
    """Map the configured distribution name onto a strategy."""
    max_per_day = config.max_per_day
    name = config.distribution

    if name == "uniform":
        return Uniform(max_per_day)
    if name == "random":
        return WeightedRandom(max_per_day)
    if name == "gaussian":
        return Gaussian(max_per_day, config.gaussian_mean, config.gaussian_std_dev)
    if name == "custom":
        return Custom(
            max_per_day,
            pattern=config.pattern,
            weights=config.weekday_weights or CUSTOM_WEEKDAY_WEIGHTS,
        )
    if name == "pattern":
        spec = PatternSpec(
            preset=config.pattern_preset,
            custom=config.pattern_custom,
            scale=config.pattern_scale,
            repeat=config.pattern_repeat,
            intensity=config.pattern_intensity,
        )
        return Custom(max_per_day, pattern=pattern_counts(spec, days[0], len(days), max_per_day))

    raise GenerationError(f"Unknown distribution type: {name}")


def generate_plan(config: Config) -> Plan:
    """Generate per-day commit counts for the configured date range."""
    days = date_range(config.start_date, config.end_date)
    strategy = build_strategy(config, days)
    logger.debug("Generating %d days with %s", len(days), strategy)
    return generate(strategy, days, SeededRandom(config.seed))


def build_plan(config: Config) -> Plan:
    """Generate a plan and fill in its commit messages."""
    plan = generate_plan(config)
    return populate_messages(
        plan, config.message_style, config.custom_messages, config.seed
    )


def calculate_stats(plan: Plan) -> PlanStats:
    """Summarize a plan."""
    counts = [day.count for day in plan]
    total = sum(counts)
    active = sum(1 for count in counts if count > 0)

    return PlanStats(
        total_commits=total,
        total_days=len(plan),
        active_days=active,
        average_per_active_day=total / active if active else 0.0,
        max_per_day=max(counts, default=0),
        min_per_day=min(counts, default=0),
    )
