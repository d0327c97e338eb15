from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class GenerateResponse(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "code": "for number in numbers:\n    if number % 2 == 0:\n        print(number)",
            }
        }
    )

    code: str = Field(..., description="Generated text, code or prose")


class SolveResponse(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "solution": "Use a hash map of seen values and look up target - value.",
            }
        }
    )

    solution: str = Field(..., description="Generated answer to the problem statement")


class ErrorResponse(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "Failed to generate code.",
            }
        }
    )

    error: str = Field(..., description="Fixed, non-specific error message")
