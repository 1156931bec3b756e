from __future__ import annotations

import random
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from retrykit.backoff import RandomSource, compute_delay


class RetryPolicy(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    delay_factor_seconds: float = Field(gt=0, allow_inf_nan=False)
    randomization_factor: float = Field(ge=0, le=1)
    max_delay_seconds: float = Field(ge=0, allow_inf_nan=False)
    max_attempts: int = Field(ge=1)
    random_source: Any = Field(default_factory=random.Random, repr=False, exclude=True)

    @field_validator("random_source")
    @classmethod
    def _check_random_source(cls, value: Any) -> Any:
        if not isinstance(value, RandomSource):
            raise ValueError("random_source must provide a random() -> float method")
        return value

    def delay_for_attempt(self, attempt: int) -> float:
        return compute_delay(
            attempt,
            delay_factor_seconds=self.delay_factor_seconds,
            randomization_factor=self.randomization_factor,
            max_delay_seconds=self.max_delay_seconds,
            sample=self.random_source.random(),
        )


def default_policy() -> RetryPolicy:
    return RetryPolicy(
        delay_factor_seconds=0.1,
        randomization_factor=0.25,
        max_delay_seconds=10.0,
        max_attempts=8,
    )
