"""
Base Models for the HTTP Surface

Request bodies are strict so a misspelled field fails with 422 instead of
being silently dropped. Response bodies accept domain objects and are
serialized with their camelCase aliases.

Usage:
    class StartSessionRequest(StrictRequest):
        module_id: str = Field(alias="moduleId")

    class SessionStateResponse(StrictResponse):
        session_id: str = Field(alias="sessionId")
"""

from pydantic import BaseModel, ConfigDict


class StrictRequest(BaseModel):
    """
    Base for request bodies.

    Unknown fields are rejected, strings are stripped, and fields may be
    given by name or alias.
    """

    model_config = ConfigDict(
        extra="forbid",
        validate_default=True,
        str_strip_whitespace=True,
        populate_by_name=True,
    )


class StrictResponse(BaseModel):
    """Base for response bodies; extra attributes of the source are ignored."""

    model_config = ConfigDict(
        extra="ignore",
        validate_default=True,
        from_attributes=True,  # build from dataclasses and ORM rows
        populate_by_name=True,
    )
