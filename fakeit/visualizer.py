"""
Terminal preview of a plan as a contribution graph.
"""

import math
import shutil
from datetime import date, timedelta
from typing import Dict, List, Optional

from .distributions import Plan
from .planner import calculate_stats

Week = List[Optional[int]]

DAY_LABELS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


def bold(text: str) -> str:
    return f"\033[1m{text}\033[0m"


def muted(text: str) -> str:
    return f"\033[90m{text}\033[0m"


def warn(text: str) -> str:
    return f"\033[33m{text}\033[0m"


class Visualizer:
    """Renders a plan as a GitHub-style contribution graph."""

    COLOR_MIN = (22, 27, 34)
    COLOR_MAX = (57, 211, 83)
    BLOCK = "█"

    def __init__(self, plan: Plan, width: Optional[int] = None):
        self.plan = plan
        self.counts: Dict[date, int] = {day.date: day.count for day in plan}
        self.start = plan[0].date
        self.end = plan[-1].date
        self.max_count = max(self.counts.values())
        self.width = width or shutil.get_terminal_size((80, 24)).columns

    def render(self) -> str:
        """Pick a layout that fits the terminal and append statistics."""
        weeks = self._weeks(self.start, self.end)

        if 4 + len(weeks) * 2 <= self.width:
            lines = self._render_horizontal(weeks)
        elif self.width >= 70:
            lines = self._render_quarterly()
        else:
            lines = self._render_vertical(weeks)

        return "\n".join(lines + self._render_statistics())

    def _render_grid(self, weeks: List[Week]) -> List[str]:
        lines = []
        for day_idx, label in enumerate(DAY_LABELS):
            cells = "".join(
                "  " if week[day_idx] is None else self._block(week[day_idx]) * 2
                for week in weeks
            )
            lines.append(f"{muted(label)} {cells}")
        return lines

    def _render_horizontal(self, weeks: List[Week]) -> List[str]:
        lines = [bold("Commit Graph Preview"), ""]
        lines.append(muted(self._month_labels(weeks)))
        lines += self._render_grid(weeks)
        lines += ["", self._legend(), ""]
        return lines

    def _render_quarterly(self) -> List[str]:
        lines = [bold("Commit Graph Preview") + " " + muted("(quarterly view)"), ""]

        current = self.start
        while current <= self.end:
            quarter = (current.month - 1) // 3 + 1
            quarter_end = min(_quarter_end(current.year, quarter), self.end)
            lines.append(
                bold(f"Q{quarter} {current.year}")
                + muted(f" {current:%b %d} - {quarter_end:%b %d, %Y}")
            )
            lines += self._render_grid(self._weeks(current, quarter_end))
            lines.append("")
            current = quarter_end + timedelta(days=1)

        lines += [self._legend(), ""]
        return lines

    def _render_vertical(self, weeks: List[Week]) -> List[str]:
        lines = [bold("Commit Graph Preview") + " " + muted("(vertical view)"), ""]
        lines.append(bold("Week  ") + " " + muted("M T W T F S S"))

        monday = self.start - timedelta(days=self.start.weekday())
        for week in weeks:
            cells = "".join(
                "  " if count is None else self._block(count) * 2 for count in week
            )
            lines.append(f"{muted(monday.strftime('%b %d'))} {cells}")
            monday += timedelta(days=7)

        lines.append("")
        return lines

    def _render_statistics(self) -> List[str]:
        stats = calculate_stats(self.plan)
        return [
            bold("Statistics"),
            f"  Total commits: {stats.total_commits}",
            f"  Days with commits: {stats.active_days}/{stats.total_days}",
            f"  Average per active day: {stats.average_per_active_day:.1f}",
            f"  Max commits in a day: {stats.max_per_day}",
        ]

    def _legend(self) -> str:
        steps = 5
        blocks = "".join(
            self._block(math.ceil(i / (steps - 1) * self.max_count)) for i in range(steps)
        )
        return f"Less {blocks} More"

    def _weeks(self, start: date, end: date) -> List[Week]:
        """Monday-first weeks covering start..end; days outside are None."""
        current = start - timedelta(days=start.weekday())
        weeks = []
        week: Week = []

        while current <= end:
            week.append(self.counts.get(current, 0) if current >= start else None)
            if len(week) == 7:
                weeks.append(week)
                week = []
            current += timedelta(days=1)

        if week:
            weeks.append(week + [None] * (7 - len(week)))
        return weeks

    def _month_labels(self, weeks: List[Week]) -> str:
        labels = [" "] * (len(weeks) * 2)
        monday = self.start - timedelta(days=self.start.weekday())
        last_month = None
        for i in range(len(weeks)):
            week_start = max(monday + timedelta(days=7 * i), self.start)
            if week_start.month != last_month:
                name = week_start.strftime("%b")
                if i * 2 + len(name) <= len(labels):
                    labels[i * 2 : i * 2 + len(name)] = name
                last_month = week_start.month
        return "    " + "".join(labels)

    def _block(self, count: int) -> str:
        if count == 0:
            return muted("·")
        ratio = math.sqrt(count / max(self.max_count, 1))
        r, g, b = (
            int(lo + (hi - lo) * ratio) for lo, hi in zip(self.COLOR_MIN, self.COLOR_MAX)
        )
        return f"\033[38;2;{r};{g};{b}m{self.BLOCK}\033[0m"


def _quarter_end(year: int, quarter: int) -> date:
    end_month = quarter * 3
    if end_month == 12:
        return date(year, 12, 31)
    return date(year, end_month + 1, 1) - timedelta(days=1)


def render_samples(plan: Plan, days: int = 5, per_day: int = 3) -> str:
    """List a few planned days with their first messages."""
    active = [day for day in plan if day.count > 0]
    lines = [bold("Sample Commits")]

    for day in active[:days]:
        lines.append(muted(f"  {day.date.isoformat()} ({day.count} commits):"))
        for i, message in enumerate(day.messages[:per_day], 1):
            lines.append(f"    {i}. {message}")
        if len(day.messages) > per_day:
            lines.append(muted(f"    ... and {len(day.messages) - per_day} more"))

    if len(active) > days:
        lines.append(muted(f"  ... and {len(active) - days} more days with commits"))
    return "\n".join(lines)
