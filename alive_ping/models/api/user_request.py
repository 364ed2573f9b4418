from pydantic import BaseModel, Field, field_validator


def _validate_hours(value: float | None) -> float | None:
    # Stored as NUMERIC(8, 2)
    if value is not None and round(value, 2) != value:
        raise ValueError("Hours allow at most 2 decimal places")
    return value


class UserSettingsUpdateRequest(BaseModel):
    """Request body for PUT /me/settings. Omitted fields are left unchanged."""

    nickname: str | None = Field(None, min_length=1, max_length=100)
    check_in_interval_hours: float | None = Field(None, gt=0, le=24 * 30)
    grace_period_hours: float | None = Field(None, ge=0, le=24 * 7)
    reminder_before_hours: float | None = Field(None, ge=0, le=24 * 7)
    is_paused: bool | None = None

    _check_hours = field_validator(
        "check_in_interval_hours", "grace_period_hours", "reminder_before_hours"
    )(_validate_hours)

    def changes(self) -> dict:
        return self.model_dump(exclude_none=True)
