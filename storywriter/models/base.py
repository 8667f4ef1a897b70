"""Common pydantic configuration for all pipeline records."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class FrozenRecord(BaseModel):
    """
    Immutable record serialised with camelCase keys.

    Accepts both snake_case and camelCase on input. Records are never mutated;
    use model_copy(update=...) to build an extended instance.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )
