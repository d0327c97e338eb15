from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_LANGUAGE = "javascript"


class GenerateRequest(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "pseudocode": "for each number in list\n  if number is even print it",
                "language": "python",
            }
        }
    )

    # Blank text is rejected by the endpoint with its own message, not by pydantic
    pseudocode: str | None = Field(None, description="Pseudocode to convert")
    language: str = Field(
        DEFAULT_LANGUAGE,
        description='Target language identifier, or "english" for free-form prose',
    )

    @field_validator("language", mode="before")
    @classmethod
    def default_null_language(cls, v):
        return DEFAULT_LANGUAGE if v is None else v

    def has_input(self) -> bool:
        return bool(self.pseudocode and self.pseudocode.strip())


class SolveRequest(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "problemStatement": "Find the two numbers in a list that add up to a target.",
            }
        },
    )

    problem_statement: str | None = Field(
        None, alias="problemStatement", description="Free-text problem to solve"
    )

    def has_input(self) -> bool:
        return bool(self.problem_statement and self.problem_statement.strip())
