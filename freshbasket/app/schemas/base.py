"""
Shared Pydantic base for API payloads.

Field names are snake_case in Python and camelCase on the wire, matching
what the storefront and dashboards already send.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base schema: camelCase aliases, population by either name."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )
