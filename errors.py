"""Typed failures raised by the registry, the ledgers and the coordinator.

Every error carries a stable ``code`` (used in API responses) and a
human-readable ``detail``. ``InvariantViolation`` is the odd one out: it means
the records disagree with each other and is never a caller mistake.
"""

from __future__ import annotations

from typing import Optional


class LifecycleError(Exception):
    code = "lifecycle_error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> dict:
        return {"detail": self.detail, "code": self.code}


class NotFound(LifecycleError):
    code = "not_found"

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class AssetNotFound(NotFound):
    code = "asset_not_found"

    def __init__(self, asset_id: str):
        super().__init__("asset", asset_id)


class DuplicateId(LifecycleError):
    code = "duplicate_id"

    def __init__(self, entity_id: str):
        super().__init__(f"id {entity_id} already exists")
        self.entity_id = entity_id


class DuplicateSerial(LifecycleError):
    code = "duplicate_serial"

    def __init__(self, serial_number: str):
        super().__init__(f"serial number {serial_number} already registered")
        self.serial_number = serial_number


class IllegalTransition(LifecycleError):
    code = "illegal_transition"

    def __init__(self, current: str, target: Optional[str], operation: str, detail: Optional[str] = None):
        super().__init__(
            detail or f"cannot {operation}: status is '{current}'"
            + (f", '{target}' not reachable" if target else "")
        )
        self.current = current
        self.target = target
        self.operation = operation

    def to_dict(self) -> dict:
        d = super().to_dict()
        d.update(current=self.current, target=self.target, operation=self.operation)
        return d


class AlreadyActive(LifecycleError):
    code = "already_active"

    def __init__(self, asset_id: str, handout_id: str):
        super().__init__(f"asset {asset_id} already has active handout {handout_id}")
        self.asset_id = asset_id
        self.handout_id = handout_id


class AlreadyClosed(LifecycleError):
    code = "already_closed"

    def __init__(self, handout_id: str):
        super().__init__(f"handout {handout_id} is already returned")
        self.handout_id = handout_id


class RepairInProgress(LifecycleError):
    code = "repair_in_progress"

    def __init__(self, asset_id: str, ticket_id: str):
        super().__init__(f"asset {asset_id} already has open repair ticket {ticket_id}")
        self.asset_id = asset_id
        self.ticket_id = ticket_id


class InvalidInput(LifecycleError):
    code = "invalid_input"


class InvalidCost(InvalidInput):
    code = "invalid_cost"

    def __init__(self, cost):
        super().__init__(f"cost must be a non-negative number, got {cost!r}")
        self.cost = cost


class InvariantViolation(LifecycleError):
    code = "invariant_violation"
