"""
Pydantic schemas for the agent's request and responses.
"""

from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
)

ScalarValue = StrictStr | StrictBool | StrictInt | StrictFloat


class QueryRequest(BaseModel):
    """Body for POST /: which database to reach and what to run there."""

    driver: str = Field(..., min_length=1, description="Driver alias, e.g. postgresql or mariadb.")
    connection: dict[str, ScalarValue] = Field(
        default_factory=dict,
        description="host, port, user, password, database and driver-specific keys.",
    )
    sql: str = Field(..., min_length=1)
    params: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("params", "parameters"),
        description="Values for :name placeholders in sql.",
    )


class ConnectRequest(BaseModel):
    """Body for POST /ping: connectivity check only."""

    driver: str = Field(..., min_length=1)
    connection: dict[str, ScalarValue] = Field(default_factory=dict)


class Envelope(BaseModel):
    """Standard envelope for non-streamed responses."""

    success: bool
    message: str | None = None
    data: list[Any] = Field(default_factory=list)
