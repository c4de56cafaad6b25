"""Priority policies applied to orders that arrive without an explicit priority."""

from __future__ import annotations

import random
from abc import ABC, abstractmethod

from ...config import settings
from ...models.domain import Order, Priority


class PriorityPolicy(ABC):
    @abstractmethod
    def assign(self, order: Order) -> Priority:
        """Return the priority for an order that has none."""


class RandomPriorityPolicy(PriorityPolicy):
    """Marks a fixed share of orders as critical. Seedable for reproducible runs."""

    def __init__(self, critical_probability: float | None = None, seed: int | None = None) -> None:
        probability = settings.critical_priority_probability if critical_probability is None else critical_probability
        if not 0.0 <= probability <= 1.0:
            raise ValueError("critical_probability must be between 0 and 1.")
        self.critical_probability = probability
        self._random = random.Random(seed if seed is not None else settings.priority_seed)

    def assign(self, order: Order) -> Priority:
        return Priority.CRITICAL if self._random.random() < self.critical_probability else Priority.NORMAL


class FixedPriorityPolicy(PriorityPolicy):
    def __init__(self, priority: Priority = Priority.NORMAL) -> None:
        self.priority = priority

    def assign(self, order: Order) -> Priority:
        return self.priority
