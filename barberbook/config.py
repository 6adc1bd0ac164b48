"""
Configuration management using Pydantic models loaded from YAML.
"""

import logging
from pathlib import Path
from typing import List

import yaml
from pydantic import BaseModel, Field, field_validator

from .domain.exceptions import InvalidScheduleFormat
from .domain.models import DayWindow, parse_clock_time


class WorkingHoursEntry(BaseModel):
    """Opening hours for one weekday (0=Sunday, 6=Saturday)."""
    day_of_week: int
    start: str = "09:00"
    end: str = "18:00"
    is_open: bool = True

    @field_validator("day_of_week")
    @classmethod
    def validate_day(cls, v: int) -> int:
        """Validate weekday is between 0 and 6."""
        if v not in range(7):
            raise ValueError(f"day_of_week must be between 0 and 6, got {v}")
        return v

    @field_validator("start", "end")
    @classmethod
    def validate_clock_time(cls, v: str) -> str:
        """Validate the value is an HH:MM clock time."""
        try:
            parse_clock_time(v)
        except InvalidScheduleFormat as exc:
            raise ValueError(str(exc)) from exc
        return v

    def to_day_window(self) -> DayWindow:
        return DayWindow(
            day_of_week=self.day_of_week,
            start=self.start,
            end=self.end,
            is_open=self.is_open,
        )


def _default_working_hours() -> List[WorkingHoursEntry]:
    return [
        WorkingHoursEntry(day_of_week=0, start="09:00", end="18:00", is_open=False),
        WorkingHoursEntry(day_of_week=1, start="09:00", end="18:00"),
        WorkingHoursEntry(day_of_week=2, start="09:00", end="18:00"),
        WorkingHoursEntry(day_of_week=3, start="09:00", end="18:00"),
        WorkingHoursEntry(day_of_week=4, start="09:00", end="18:00"),
        WorkingHoursEntry(day_of_week=5, start="09:00", end="18:00"),
        WorkingHoursEntry(day_of_week=6, start="10:00", end="16:00"),
    ]


class DefaultsConfig(BaseModel):
    """Default booking settings."""
    slot_interval_minutes: int = 30
    working_hours: List[WorkingHoursEntry] = Field(default_factory=_default_working_hours)

    @field_validator("slot_interval_minutes")
    @classmethod
    def validate_interval(cls, value: int) -> int:
        """Ensure slot spacing is positive."""
        if value <= 0:
            raise ValueError("slot_interval_minutes must be greater than zero")
        return value

    @field_validator("working_hours")
    @classmethod
    def validate_unique_days(cls, value: List[WorkingHoursEntry]) -> List[WorkingHoursEntry]:
        """Ensure each weekday appears at most once."""
        days = [entry.day_of_week for entry in value]
        duplicates = sorted({day for day in days if days.count(day) > 1})
        if duplicates:
            raise ValueError(f"Duplicate working hours for weekday(s): {duplicates}")
        return value

    def get_day_windows(self) -> List[DayWindow]:
        """Get default working hours as domain windows."""
        return [entry.to_day_window() for entry in self.working_hours]


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "America/Sao_Paulo"
    data_file: Path = Path("shop_data.json")
    log_level: str = "WARNING"
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Ensure the level is one the logging module knows."""
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Read an ``AppConfig`` from a YAML file.

        A relative ``data_file`` is taken relative to the directory holding
        the config file, so the CLI works from any working directory.

        Raises:
            FileNotFoundError: If config_path is missing
            ValueError: If the YAML is unreadable or fails validation
        """
        if not config_path.is_file():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Pass --config or copy config.example.yaml to config.yaml."
            )

        raw_text = config_path.read_text(encoding="utf-8")
        try:
            data = yaml.safe_load(raw_text)
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if data is None:
            data = {}
        elif not isinstance(data, dict):
            raise ValueError(f"{config_path}: expected a mapping of settings, got {type(data).__name__}.")

        config = cls.model_validate(data)
        if not config.data_file.is_absolute():
            config.data_file = config_path.parent / config.data_file
        return config


def get_default_config_path() -> Path:
    """``./config.yaml`` if present, else the one next to the installed package."""
    candidates = (
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parent.parent / "config.yaml",
    )
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return candidates[0]
