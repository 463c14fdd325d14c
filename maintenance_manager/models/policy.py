"""Retry policy model for bounded poll loops."""

import math

from pydantic import BaseModel, Field


class RetryPolicy(BaseModel):
    """Dual bound on a poll loop.

    ``max_attempts * interval <= total_timeout`` is advisory only; whichever
    bound is reached first ends the loop. A poll with a settle delay spends
    one extra attempt and the settle time on its confirming query, so size
    restore budgets for both.
    """

    max_attempts: int = Field(ge=1)
    interval: float = Field(ge=0)
    total_timeout: float = Field(gt=0)

    def max_queries(self) -> int:
        """Upper bound on queries a never-healthy probe receives."""
        if self.interval == 0:
            return self.max_attempts
        return min(self.max_attempts, math.ceil(self.total_timeout / self.interval))

    def __str__(self) -> str:
        return (
            f"{self.max_attempts} attempts every {self.interval:g}s "
            f"within {self.total_timeout:g}s"
        )
