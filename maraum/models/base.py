"""Base schema with camelCase serialization for API payloads."""

from pydantic import BaseModel, ConfigDict


def to_camel(string: str) -> str:
    """Convert snake_case to camelCase."""
    head, *tail = string.split("_")
    return head + "".join(part.title() for part in tail)


class BaseSchema(BaseModel):
    """Base schema for every API and store model.

    Attributes are snake_case in Python and in the database, camelCase on
    the wire. Both spellings are accepted on input.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )
