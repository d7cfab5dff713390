"""Decision Engine results."""

from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from netpilot.models.agent import ActionProposal, clamp_confidence


class CombinationStrategy(str, Enum):
    """How a rule group folds the weights of the predicates that fired."""

    ADDITIVE = "additive"      # Sum of weights
    MAXIMUM = "maximum"        # Strongest single piece of evidence


class DecisionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    group: str
    should_act: bool
    confidence: float = Field(ge=0, le=1)
    reason: str = ""
    fired_rules: List[str] = []
    actions: List[ActionProposal] = []

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, value: float) -> float:
        return clamp_confidence(value)
