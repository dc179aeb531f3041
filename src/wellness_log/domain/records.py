"""
Record domain models.

This module defines the three measurement record kinds (weight, blood pressure,
habit) as a tagged union discriminated by ``kind``, the habit definition model,
and the four cached collections they live in.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from wellness_log.utils.exceptions import ValidationError

HABIT_VALUES = (0.0, 0.5, 1.0)


class RecordKind(str, Enum):
    """Enumeration of measurement record kinds."""

    WEIGHT = "weight"
    BLOOD_PRESSURE = "blood_pressure"
    HABIT = "habit"


class Collection(str, Enum):
    """Enumeration of cached record collections."""

    WEIGHT = "weight"
    BLOOD_PRESSURE = "blood_pressure"
    HABIT_RECORDS = "habit_records"
    HABIT_DEFINITIONS = "habit_definitions"


class BaseRecord(BaseModel):
    """
    Fields shared by every measurement record.

    ``date`` and ``time`` are kept as the strings the user entered; time has
    minute resolution only, so several records may share the same pair.
    """

    id: str = Field(min_length=1, description="Opaque unique record identifier")
    date: str = Field(description="Calendar day (YYYY-MM-DD)")
    time: str = Field("00:00", description="Local wall-clock time (HH:MM)")

    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator("date")
    @classmethod
    def _check_date(cls, value: str) -> str:
        try:
            datetime.strptime(value, "%Y-%m-%d")
        except ValueError as e:
            raise ValueError(f"date must be YYYY-MM-DD, got {value!r}") from e
        return value

    @field_validator("time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        try:
            datetime.strptime(value, "%H:%M")
        except ValueError as e:
            raise ValueError(f"time must be HH:MM, got {value!r}") from e
        return value


class WeightRecord(BaseRecord):
    """Body weight measurement with optional body composition values."""

    kind: Literal["weight"] = "weight"
    weight: float = Field(gt=0, description="Weight in kilograms")
    body_fat: float | None = Field(None, ge=0, le=100, description="Body fat percentage")
    waist: float | None = Field(None, gt=0, description="Waist circumference in centimetres")
    note: str | None = None
    exclude_from_graph: bool = False


class BloodPressureRecord(BaseRecord):
    """Blood pressure reading."""

    kind: Literal["blood_pressure"] = "blood_pressure"
    systolic: float = Field(gt=0, description="Systolic pressure (mmHg)")
    diastolic: float = Field(gt=0, description="Diastolic pressure (mmHg)")
    heart_rate: float | None = Field(None, gt=0, description="Pulse (bpm)")
    note: str | None = None
    exclude_from_graph: bool = False

    @property
    def pressure_sum(self) -> float:
        return self.systolic + self.diastolic


class HabitRecord(BaseRecord):
    """Daily habit outcome: 0 not achieved, 0.5 partially achieved, 1 achieved."""

    kind: Literal["habit"] = "habit"
    field_id: str = Field(min_length=1, description="Habit definition this record belongs to")
    value: float

    @field_validator("value")
    @classmethod
    def _check_value(cls, value: float) -> float:
        if value not in HABIT_VALUES:
            raise ValueError(f"value must be one of {HABIT_VALUES}, got {value!r}")
        return float(value)

    @property
    def achieved(self) -> bool:
        return self.value == 1.0

    @property
    def partial(self) -> bool:
        return self.value == 0.5


class HabitDefinition(BaseModel):
    """User-defined habit that habit records refer to."""

    field_id: str = Field(min_length=1)
    name: str
    order: int = 0
    display: bool = True

    model_config = ConfigDict(frozen=True, extra="ignore")


MeasurementRecord = Annotated[
    Union[WeightRecord, BloodPressureRecord, HabitRecord],
    Field(discriminator="kind"),
]
CachedItem = Union[WeightRecord, BloodPressureRecord, HabitRecord, HabitDefinition]

_COLLECTION_MODELS: dict[Collection, type[BaseModel]] = {
    Collection.WEIGHT: WeightRecord,
    Collection.BLOOD_PRESSURE: BloodPressureRecord,
    Collection.HABIT_RECORDS: HabitRecord,
    Collection.HABIT_DEFINITIONS: HabitDefinition,
}


def model_for(collection: Collection) -> type[BaseModel]:
    """Return the model class stored in a collection."""
    return _COLLECTION_MODELS[Collection(collection)]


def key_field(collection: Collection) -> str:
    """Return the name of the field that identifies items in a collection."""
    return "field_id" if Collection(collection) == Collection.HABIT_DEFINITIONS else "id"


def record_key(item: CachedItem) -> str:
    """Return the identifying key of a cached item."""
    if isinstance(item, HabitDefinition):
        return item.field_id
    return item.id


def parse_record(collection: Collection, data: dict[str, Any]) -> CachedItem:
    """
    Validate raw data into the model stored in ``collection``.

    Args:
        collection: Target collection.
        data: Raw field mapping (e.g. loaded from storage or typed by a user).

    Returns:
        Validated, immutable model instance.

    Raises:
        ValidationError: If the data does not describe a valid item.
    """
    model = model_for(collection)
    try:
        return model.model_validate(data)  # type: ignore[return-value]
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid {Collection(collection).value} item: {e}") from e
