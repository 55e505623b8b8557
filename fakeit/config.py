"""
Run configuration: defaults, validation and JSON (de)serialization.
"""

import json
from dataclasses import asdict, dataclass, field, fields
from datetime import date, timedelta
from pathlib import Path
from typing import List, Optional

from .errors import GenerationError
from .messages import MESSAGE_STYLES, validate_custom_messages
from .patterns import INTENSITY_MULTIPLIERS, PRESET_PATTERNS
from .validation import is_valid_author_name, is_valid_email

DISTRIBUTIONS = ["uniform", "random", "gaussian", "custom", "pattern"]
MAX_RANGE_DAYS = 3650
HIGH_MAX_PER_DAY = 100


@dataclass
class Config:
    """Configuration for plan generation and execution."""

    # Time range
    start_date: date
    end_date: date

    # Distribution
    max_per_day: int
    distribution: str
    gaussian_mean: float = 0.5
    gaussian_std_dev: float = 0.25
    weekday_weights: Optional[List[float]] = None  # Mon-Sun multipliers
    pattern: Optional[List[int]] = None  # Explicit per-day counts, tiled

    # Contribution graph drawing (distribution "pattern")
    pattern_preset: Optional[str] = None
    pattern_custom: Optional[str] = None
    pattern_scale: int = 1
    pattern_repeat: int = 1
    pattern_intensity: str = "medium"

    # Messages
    message_style: str = "default"
    custom_messages: List[str] = field(default_factory=list)

    # Git settings
    user_name: str = ""
    user_email: str = ""
    repo_path: Path = field(default_factory=Path.cwd)
    branch: str = "main"

    # Runtime options
    seed: Optional[str] = None
    preview: bool = False
    push: bool = False
    verbose: bool = False
    yes: bool = False

    def validate(self) -> List[str]:
        """Validate all parameters; return warnings, raise on errors."""
        errors = []
        warnings = []

        if self.start_date > self.end_date:
            errors.append("start_date must be <= end_date")
        else:
            if (self.end_date - self.start_date).days > MAX_RANGE_DAYS:
                warnings.append("Date range spans more than 10 years, this may take a while")
            if self.end_date > date.today():
                warnings.append("End date is in the future")

        if not isinstance(self.max_per_day, int) or isinstance(self.max_per_day, bool):
            errors.append("max_per_day must be an integer")
        elif self.max_per_day < 1:
            errors.append("max_per_day must be at least 1")
        elif self.max_per_day > HIGH_MAX_PER_DAY:
            warnings.append(
                "max_per_day is very high (>100), this may create unrealistic commit patterns"
            )

        if self.distribution not in DISTRIBUTIONS:
            errors.append(f"distribution must be one of: {', '.join(DISTRIBUTIONS)}")

        if self.message_style not in MESSAGE_STYLES:
            errors.append(f"message_style must be one of: {', '.join(MESSAGE_STYLES)}")

        if self.custom_messages:
            errors.extend(
                f"custom_messages: {err}"
                for err in validate_custom_messages(self.custom_messages)
            )

        for name in ("gaussian_mean", "gaussian_std_dev"):
            if not 0 <= getattr(self, name) <= 1:
                errors.append(f"{name} must be between 0 and 1")

        if self.weekday_weights is not None:
            if len(self.weekday_weights) != 7:
                errors.append(
                    f"weekday_weights needs 7 values, got {len(self.weekday_weights)}"
                )
            elif any(w < 0 for w in self.weekday_weights):
                errors.append("weekday_weights must be >= 0")

        if self.pattern is not None:
            if not self.pattern:
                errors.append("pattern cannot be empty")
            elif any(not isinstance(c, int) or c < 0 for c in self.pattern):
                errors.append("pattern values must be non-negative integers")

        if self.pattern_preset and self.pattern_preset not in PRESET_PATTERNS:
            errors.append(
                f"pattern_preset must be one of: {', '.join(PRESET_PATTERNS)}"
            )
        if not 1 <= self.pattern_scale <= 5:
            errors.append("pattern_scale must be between 1 and 5")
        if not 1 <= self.pattern_repeat <= 10:
            errors.append("pattern_repeat must be between 1 and 10")
        if self.pattern_intensity not in INTENSITY_MULTIPLIERS:
            errors.append(
                f"pattern_intensity must be one of: {', '.join(INTENSITY_MULTIPLIERS)}"
            )

        if not is_valid_author_name(self.user_name):
            errors.append(
                "user_name is invalid (must be 1-100 characters, no control characters)"
            )
        if not is_valid_email(self.user_email):
            errors.append("user_email format is invalid")

        if self.seed is not None and not self.seed.strip():
            errors.append("seed cannot be empty")

        if errors:
            raise GenerationError(
                "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            )

        return warnings

    @staticmethod
    def deserialize(data: dict) -> "Config":
        """Load Config from dictionary with type conversions."""
        data = data.copy()

        known = {f.name for f in fields(Config)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise GenerationError(f"Unknown configuration keys: {', '.join(unknown)}")

        # Convert ISO strings to dates
        for key in ["start_date", "end_date"]:
            if isinstance(data.get(key), str):
                try:
                    data[key] = date.fromisoformat(data[key])
                except ValueError as e:
                    raise GenerationError(f"Invalid {key}: {data[key]}") from e

        if isinstance(data.get("repo_path"), str):
            data["repo_path"] = Path(data["repo_path"])

        try:
            return Config(**data)
        except TypeError as e:
            raise GenerationError(f"Incomplete configuration: {e}") from e

    def serialize(self) -> dict:
        """Save Config to dictionary with type conversions."""
        data = asdict(self)
        data["start_date"] = self.start_date.isoformat()
        data["end_date"] = self.end_date.isoformat()
        data["repo_path"] = str(self.repo_path)
        return data


def create_default_config() -> Config:
    """Create default configuration."""
    today = date.today()
    return Config(
        start_date=today - timedelta(days=364),
        end_date=today,
        max_per_day=10,
        distribution="random",
        message_style="default",
        repo_path=Path.cwd(),
    )


def load_config(path: Optional[Path]) -> Config:
    """Load configuration from a JSON file merged over the defaults."""
    if path is None:
        return create_default_config()

    try:
        with open(path, encoding="utf-8") as f:
            config_dict = json.load(f)
    except FileNotFoundError as e:
        raise GenerationError(f"Configuration file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise GenerationError(f"Invalid JSON in config file {path}: {e}") from e

    if not isinstance(config_dict, dict):
        raise GenerationError(f"Config file {path} must contain a JSON object")

    # Merge with defaults for missing fields
    default_dict = create_default_config().serialize()
    default_dict.update(config_dict)

    return Config.deserialize(default_dict)


def save_config(config: Config, path: Path) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config.serialize(), f, indent=2, ensure_ascii=False)
