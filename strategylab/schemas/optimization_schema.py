from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Union


class ParameterRange(BaseModel):
    """Inclusive numeric range swept by the optimizer."""
    min: float
    max: float
    step: float = Field(gt=0)

    @model_validator(mode="after")
    def validate_bounds(self) -> "ParameterRange":
        if self.min > self.max:
            raise ValueError(f"min ({self.min}) must not exceed max ({self.max})")
        return self


class ParameterGrid(BaseModel):
    """Parameter name -> range or explicit list of values."""
    parameters: dict[str, Union[ParameterRange, list[float]]]

    @field_validator("parameters")
    @classmethod
    def validate_parameters(cls, v: dict) -> dict:
        if not v:
            raise ValueError("Parameter ranges cannot be empty")
        for name, definition in v.items():
            if isinstance(definition, list) and not definition:
                raise ValueError(f"Parameter '{name}' has empty list")
        return v
