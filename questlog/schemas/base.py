"""Base schemas with common configuration."""
from pydantic import BaseModel, ConfigDict, model_serializer
from datetime import datetime, UTC
from typing import Any, Mapping


def serialize_datetime_utc(dt: datetime) -> str:
    """
    Serialize datetime to ISO 8601 with explicit UTC timezone.

    The game backend stores some timestamps without an offset, so naive
    datetimes are treated as UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat().replace('+00:00', 'Z')


def first_present(data: Mapping[str, Any], *names: str, default: Any = None) -> Any:
    """Return the first non-None value among ``names`` in ``data``.

    Used by the boundary validators to fold historical field names
    (``xp_reward``/``xpReward``/...) into one canonical field.
    """
    for name in names:
        value = data.get(name)
        if value is not None:
            return value
    return default


class BaseSchema(BaseModel):
    """Base schema with common configuration for payloads and views."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )

    @model_serializer(mode="wrap")
    def serialize_model(self, handler):
        """Serialize model values with custom datetime handling."""

        def _convert(value):
            if isinstance(value, datetime):
                return serialize_datetime_utc(value)
            if isinstance(value, list):
                return [_convert(item) for item in value]
            if isinstance(value, dict):
                return {key: _convert(item) for key, item in value.items()}
            return value

        data = handler(self)
        return {key: _convert(value) for key, value in data.items()}


class FrozenSchema(BaseSchema):
    """Immutable schema for reference data and snapshots."""

    model_config = ConfigDict(frozen=True)
