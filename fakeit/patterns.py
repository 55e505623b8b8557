"""
ASCII-art patterns drawn onto the contribution graph.

A pattern is a matrix of intensity levels (0-4). It is placed on the weekly
grid of the horizon (one column per week, Sunday on the first row) and turned
into an explicit per-day commit pattern for the custom distribution.
"""

import math
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from .errors import GenerationError

MAX_LEVEL = 4

PRESET_PATTERNS = {
    "heart": [
        " ███ ███ ",
        "█████████",
        "█████████",
        " ███████ ",
        "  █████  ",
        "   ███   ",
        "    █    ",
    ],
    "star": [
        "    █    ",
        "   ███   ",
        "O██O██O  ",
        " ███████ ",
        "  █████  ",
        " ██   ██ ",
        "█       █",
    ],
    "diamond": [
        "   █   ",
        "  ███  ",
        " █████ ",
        "███████",
        " █████ ",
        "  ███  ",
        "   █   ",
    ],
    "square": [
        "███████",
        "█ooooo█",
        "█ooooo█",
        "█ooooo█",
        "█ooooo█",
        "███████",
    ],
    "triangle": [
        "     █     ",
        "    ███    ",
        "   █████   ",
        "  ███████  ",
        " █████████ ",
        "███████████",
    ],
    "cross": [
        "   █   ",
        "   █   ",
        "   █   ",
        "███████",
        "   █   ",
        "   █   ",
        "   █   ",
    ],
    "wave": [
        "█     █     ",
        " █   █ █   █",
        "  █ █   █ █ ",
        "   █     █  ",
        "  .o.   .o. ",
        " .   . .   .",
        ".     .     ",
    ],
}

INTENSITY_MULTIPLIERS = {"low": 0.5, "medium": 1.0, "high": 1.5}

_CHAR_LEVELS = {" ": 0, ".": 1, "o": 2, "O": 3, "█": 4, "#": 4}


@dataclass
class PatternMatrix:
    """Intensity levels, one row per weekday-sized line of the drawing."""

    rows: List[List[int]]

    @property
    def height(self) -> int:
        return len(self.rows)

    @property
    def width(self) -> int:
        return max((len(row) for row in self.rows), default=0)


@dataclass
class PatternSpec:
    """How to build and place a pattern."""

    preset: Optional[str] = None
    custom: Optional[str] = None
    scale: int = 1
    repeat: int = 1
    intensity: str = "medium"
    center_x: float = 0.5
    center_y: float = 0.5


def parse_pattern(lines: List[str]) -> PatternMatrix:
    """Convert ASCII art into a matrix; unknown characters are medium (2)."""
    # Drop blank lines around the drawing but keep its inner layout
    while lines and not lines[0].strip():
        lines = lines[1:]
    while lines and not lines[-1].strip():
        lines = lines[:-1]
    if not lines:
        raise GenerationError("Pattern is empty")

    width = max(len(line.rstrip()) for line in lines)
    rows = []
    for line in lines:
        line = line.rstrip().ljust(width)
        rows.append([_CHAR_LEVELS.get(char, 2) for char in line])
    return PatternMatrix(rows=rows)


def preset_pattern(name: str) -> PatternMatrix:
    """Return the matrix of a preset pattern."""
    if name not in PRESET_PATTERNS:
        raise GenerationError(
            f"Unknown preset pattern: {name}. Available: {', '.join(PRESET_PATTERNS)}"
        )
    return parse_pattern(PRESET_PATTERNS[name])


def custom_pattern(text: str) -> PatternMatrix:
    """Parse user-supplied ASCII art; literal "\\n" sequences split lines."""
    return parse_pattern(text.replace("\\n", "\n").split("\n"))


def scale_pattern(pattern: PatternMatrix, scale: int) -> PatternMatrix:
    """Enlarge each cell into a scale x scale block."""
    if scale <= 1:
        return pattern
    rows = []
    for row in pattern.rows:
        scaled = [value for value in row for _ in range(scale)]
        rows.extend(list(scaled) for _ in range(scale))
    return PatternMatrix(rows=rows)


def repeat_pattern(pattern: PatternMatrix, times: int) -> PatternMatrix:
    """Tile the pattern horizontally with a small gap."""
    if times <= 1:
        return pattern
    spacing = max(1, pattern.width // 10)
    rows = []
    for row in pattern.rows:
        padded = row + [0] * (pattern.width - len(row))
        tiled: List[int] = []
        for rep in range(times):
            tiled.extend(padded)
            if rep < times - 1:
                tiled.extend([0] * spacing)
        rows.append(tiled)
    return PatternMatrix(rows=rows)


def apply_intensity(pattern: PatternMatrix, intensity: str) -> PatternMatrix:
    """Scale non-zero levels, keeping them within 1-4."""
    if intensity not in INTENSITY_MULTIPLIERS:
        raise GenerationError(
            f"Unknown intensity: {intensity}. Use one of: {', '.join(INTENSITY_MULTIPLIERS)}"
        )
    multiplier = INTENSITY_MULTIPLIERS[intensity]
    rows = [
        [
            0 if value == 0 else min(MAX_LEVEL, max(1, math.floor(value * multiplier + 0.5)))
            for value in row
        ]
        for row in pattern.rows
    ]
    return PatternMatrix(rows=rows)


def build_pattern(spec: PatternSpec) -> PatternMatrix:
    """Build the final matrix from a pattern spec (heart by default)."""
    if spec.custom:
        pattern = custom_pattern(spec.custom)
    else:
        pattern = preset_pattern(spec.preset or "heart")

    pattern = scale_pattern(pattern, spec.scale)
    pattern = repeat_pattern(pattern, spec.repeat)
    return apply_intensity(pattern, spec.intensity)


def pattern_to_levels(
    pattern: PatternMatrix, start: date, total_days: int, spec: PatternSpec
) -> List[int]:
    """Place the matrix on the weekly grid and return one level per day."""
    levels = [0] * total_days
    # Sunday-first rows, as on the contribution graph
    first_row = (start.weekday() + 1) % 7
    grid_width = math.ceil((total_days + first_row) / 7)

    start_x = math.floor(max(0, grid_width - pattern.width) * spec.center_x)
    start_y = math.floor(max(0, 7 - pattern.height) * spec.center_y)

    for py, row in enumerate(pattern.rows):
        y = start_y + py
        if y >= 7:
            break
        for px, level in enumerate(row):
            x = start_x + px
            if x >= grid_width or level == 0:
                continue
            day_index = x * 7 + y - first_row
            if 0 <= day_index < total_days:
                levels[day_index] = level

    return levels


def pattern_counts(
    spec: PatternSpec, start: date, total_days: int, max_per_day: int
) -> List[int]:
    """Per-day commit counts that draw the pattern on the graph."""
    levels = pattern_to_levels(build_pattern(spec), start, total_days, spec)
    return [math.floor(level / MAX_LEVEL * max_per_day + 0.5) for level in levels]
