"""Exception taxonomy shared by the dispatch services and the API layer."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Operator-fixable misconfiguration (unknown warehouse, missing defaults). Never retried."""


class NotFoundError(LookupError):
    """A referenced order, route, truck or warehouse does not exist."""


class UnassignableOrderError(ValueError):
    """Order cannot be resolved at intake and needs manual triage."""

    def __init__(self, order_id: int | None, reason: str) -> None:
        super().__init__(f"Pedido {order_id} no asignable: {reason}")
        self.order_id = order_id
        self.reason = reason


class InvalidTransitionError(ValueError):
    """A lifecycle transition was requested from a state that does not allow it."""

    def __init__(self, entity: str, entity_id: int | None, current: str, action: str) -> None:
        super().__init__(f"{entity} {entity_id} en estado '{current}' no admite '{action}'")
        self.entity = entity
        self.entity_id = entity_id
        self.current = current
        self.action = action


class OptimizerUnavailableError(ConnectionError):
    """Network failure or timeout talking to the optimizer. Retryable with a bounded budget."""


class OptimizerResponseError(ValueError):
    """Optimizer answered with something that is not a usable route response."""

    def __init__(self, message: str, raw: object = None) -> None:
        super().__init__(message)
        self.raw = raw


class PersistenceError(RuntimeError):
    """A unit of work could not be applied to the backing store."""


class CapacityExceededError(ValueError):
    """Proposed route volume is larger than the truck can carry."""
