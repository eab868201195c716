"""Shared pydantic configuration for immutable value models."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class FrozenModel(BaseModel):
    """Immutable model accepting both snake_case and camelCase keys.

    Analyzer output and exported timelines use the camelCase names of the
    external interface (``clipId``, ``motionIntensity``), Python code uses
    the field names. Unknown keys are ignored.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        use_enum_values=False,
    )
