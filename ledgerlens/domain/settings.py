"""Application settings with Pydantic validation.

Settings are stored as JSON and validated using Pydantic models.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ViewSettings(BaseModel):
    """Transaction list presentation defaults."""

    page_size: int = Field(default=20, ge=1, le=500)
    page_size_options: list[int] = Field(default_factory=lambda: [10, 20, 50, 100])
    default_sort_field: str = Field(
        default="date", pattern="^(date|amount|description|origin|bank)$"
    )
    default_sort_direction: str = Field(default="desc", pattern="^(asc|desc)$")

    model_config = {"validate_assignment": True}


class UndoSettings(BaseModel):
    """Countdown configuration for undoable destructive actions."""

    delay_ms: int = Field(default=5000, ge=500, le=60000)
    tick_interval_ms: int = Field(default=100, ge=10, le=1000)

    model_config = {"validate_assignment": True}


class RetrySettings(BaseModel):
    """Retry behaviour for transient collaborator failures."""

    max_retries: int = Field(default=3, ge=0, le=10)
    initial_delay_seconds: float = Field(default=1.0, ge=0.0, le=10.0)
    max_delay_seconds: float = Field(default=10.0, ge=0.0, le=60.0)

    model_config = {"validate_assignment": True}


class LoggingSettings(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    file: Optional[str] = None  # None = log to stderr only


class AppSettings(BaseModel):
    """Application settings with validation.

    Example:
        >>> settings = AppSettings()
        >>> settings.undo.delay_ms = 3000
        >>> settings.view.page_size = 50
    """

    view: ViewSettings = Field(default_factory=ViewSettings)
    undo: UndoSettings = Field(default_factory=UndoSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = {
        "validate_assignment": True,  # Validate on attribute assignment
        "extra": "forbid",  # Forbid extra fields
    }
