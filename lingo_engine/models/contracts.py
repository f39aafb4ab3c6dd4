"""
Structural Contracts

Pydantic models describing the shape the text generator must produce.
Validation failures against a contract are retried by the generative
content service.

The marking judgement is a single contract shared by every interaction
schema, and doubles as the MarkResult carried through sessions.
"""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator


class Contract(BaseModel):
    """
    Base class for generation and marking contracts.

    - camelCase aliases match what the generator is asked to emit
    - populate_by_name lets Python code build contracts with snake_case
    - extra keys from the generator are ignored, not rejected
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
    )

    def to_data(self) -> dict[str, Any]:
        """Serialize with aliases, the form stored as question/mark data."""
        return self.model_dump(by_alias=True, mode="json")


class MarkResult(Contract):
    """
    Judgement for a submitted answer.

    correctAnswer is empty whenever no correction is warranted, including
    whenever isCorrect is true.
    """

    is_correct: StrictBool = Field(
        ..., alias="isCorrect", description="Whether the user's answer was correct."
    )
    score: int = Field(..., ge=0, le=100, description="A score from 0 to 100.")
    feedback: str = Field(
        ..., min_length=1, description="Feedback for the user, explaining the result."
    )
    correct_answer: str = Field(
        "",
        alias="correctAnswer",
        description=(
            "The correct answer or relevant correct segment if the user was wrong. "
            'Return an empty string ("") if no specific correction applies.'
        ),
    )

    @field_validator("score", mode="before")
    @classmethod
    def round_fractional_score(cls, value):
        if isinstance(value, float):
            return round(value)
        return value

    @field_validator("correct_answer", mode="before")
    @classmethod
    def coerce_correct_answer(cls, value):
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return str(value)
        return value


FALLBACK_MARK_RESULT = MarkResult(
    is_correct=False, score=0, feedback="evaluation error", correct_answer=""
)


def describe_contract(contract: type[BaseModel], label: str) -> str:
    """
    Render a contract as the JSON schema text appended to prompts.

    Args:
        contract: Contract model class
        label: Contract label (e.g. "multiple-choice:generation")

    Returns:
        Instruction block naming the label and the expected JSON schema
    """
    schema = json.dumps(contract.model_json_schema(by_alias=True), indent=2)
    return (
        f"Respond with a single JSON object matching the schema '{label}'.\n"
        f"JSON schema:\n{schema}"
    )
