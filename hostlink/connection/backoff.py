"""
Reconnect backoff policy
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class BackoffPolicy:
    """
    Exponential backoff with a ceiling

    delay(k) = min(max_delay, base_delay * growth_factor ** k), where k is
    the number of reconnect attempts already made.
    """
    base_delay: float = 1.0
    growth_factor: float = 2.0
    max_delay: float = 30.0
    max_attempts: Optional[int] = None

    def __post_init__(self):
        if self.base_delay <= 0:
            raise ValueError("base_delay must be positive")
        if self.growth_factor < 1:
            raise ValueError("growth_factor must be >= 1")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")

    def delay(self, attempt: int) -> float:
        if attempt < 0:
            raise ValueError("attempt must be >= 0")
        try:
            raw = self.base_delay * self.growth_factor ** attempt
        except OverflowError:
            return self.max_delay
        return min(self.max_delay, raw)

    def exhausted(self, attempt: int) -> bool:
        return self.max_attempts is not None and attempt >= self.max_attempts
