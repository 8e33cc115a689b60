"""Lifecycle Coordinator: the only write path into the fleet records.

Each operation runs under the asset's lock and inside one database
transaction. It reads the current state, checks the transition, writes the
ledger row and the asset status, re-checks the cross-record invariants and
commits. Any error rolls the whole thing back.

    available --hand_out--> handed-out --return_asset--> available
    available | handed-out --open_repair--> under-repair
    under-repair --close_repair--> available
    available | under-repair --mark_out_of_order--> out-of-order
    any --retire--> out-of-order --reinstate--> available
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy.orm import Session

import crud
import handout_ledger
import registry
import repair_ledger
from db import begin_immediate
from errors import (
    AlreadyClosed,
    IllegalTransition,
    InvalidInput,
    InvariantViolation,
    LifecycleError,
    RepairInProgress,
)
from models import (
    OPEN_REPAIR_STATUSES,
    Asset,
    AssetIn,
    Handout,
    HandoutResult,
    RepairOpened,
    RepairResult,
    RepairTicket,
)

logger = logging.getLogger(__name__)

INITIAL_STATUSES = ("available", "out-of-order")
INVENTORY_LOCK_KEY = "inventory"


class AssetLocks:
    """One lock per asset id, kept only while some caller holds or waits on it."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        # asset id -> [lock, number of callers holding or waiting]
        self._locks: dict[str, list] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, asset_id: str) -> Iterator[None]:
        with self._guard:
            entry = self._locks.get(asset_id)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._locks[asset_id] = entry
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[asset_id]


LOCKS = AssetLocks()


@contextmanager
def _transaction(db: Session, lock_key: str, operation: str) -> Iterator[None]:
    with LOCKS.hold(lock_key):
        # anything this session loaded before the lock may be stale
        db.expire_all()
        try:
            begin_immediate(db)
            yield
            db.commit()
        except InvariantViolation as exc:
            db.rollback()
            logger.error("invariant violation during %s on %s: %s", operation, lock_key, exc.detail, exc_info=True)
            raise
        except LifecycleError as exc:
            db.rollback()
            logger.warning("%s refused on %s: %s", operation, lock_key, exc.detail)
            raise
        except Exception:
            db.rollback()
            raise


def check_asset_invariants(db: Session, asset_id: str) -> None:
    """Raise InvariantViolation if the asset and its ledgers disagree."""
    asset = registry.get(db, asset_id)

    active_count = handout_ledger.count_active(db, asset_id)
    if active_count > 1:
        raise InvariantViolation(f"asset {asset_id} has {active_count} active handouts")

    if asset.status == "handed-out":
        active = handout_ledger.active_for(db, asset_id)
        if active is None:
            raise InvariantViolation(f"asset {asset_id} is handed-out without an active handout")
        if asset.assigned_to != active.holder:
            raise InvariantViolation(
                f"asset {asset_id} assigned to {asset.assigned_to!r} but handout {active.id} holder is {active.holder!r}"
            )
    else:
        if active_count:
            raise InvariantViolation(f"asset {asset_id} is {asset.status} but has an active handout")
        if asset.assigned_to is not None:
            raise InvariantViolation(f"asset {asset_id} is {asset.status} but assigned to {asset.assigned_to!r}")

    open_count = repair_ledger.count_open(db, asset_id)
    if open_count > 1:
        raise InvariantViolation(f"asset {asset_id} has {open_count} open repair tickets")
    if (asset.status == "under-repair") != (open_count == 1):
        raise InvariantViolation(
            f"asset {asset_id} is {asset.status} with {open_count} open repair tickets"
        )


def _cancel_open_ticket(db: Session, asset_id: str, *, actor: Optional[str], why: str) -> Optional[RepairTicket]:
    ticket = repair_ledger.open_for(db, asset_id)
    if ticket is None:
        return None
    ticket = repair_ledger.advance(db, ticket.id, "cancelled", commit=False)
    crud.record_activity(
        db,
        kind="repair",
        asset_id=asset_id,
        ref_id=ticket.id,
        message=f"Repair {ticket.id} cancelled: {why}",
        actor=actor,
    )
    return ticket


def _force_close_handout(db: Session, asset_id: str, *, reason: str, actor: Optional[str], why: str) -> Optional[Handout]:
    active = handout_ledger.active_for(db, asset_id)
    if active is None:
        return None
    closed = handout_ledger.close(db, active.id, reason=reason, commit=False)
    crud.record_activity(
        db,
        kind="return",
        asset_id=asset_id,
        ref_id=closed.id,
        message=f"Handout {closed.id} to {closed.holder} closed: {why}",
        actor=actor,
    )
    logger.warning("handout %s for %s force-closed (%s)", closed.id, asset_id, reason)
    return closed


# ---------- Inventory ----------
def add_asset(db: Session, body: AssetIn, *, actor: Optional[str] = None) -> Asset:
    if body.status not in INITIAL_STATUSES:
        raise InvalidInput(
            f"new laptops start as {' or '.join(INITIAL_STATUSES)}; "
            f"use a handout or repair to reach {body.status!r}"
        )

    with _transaction(db, INVENTORY_LOCK_KEY, "add asset"):
        asset = registry.add(db, body, commit=False)
        crud.record_activity(
            db,
            kind="inventory",
            asset_id=asset.id,
            message=f"New laptop {asset.id} ({asset.brand} {asset.model}) added to inventory",
            actor=actor,
        )
        check_asset_invariants(db, asset.id)

    logger.info("asset %s added status=%s serial=%s", asset.id, asset.status, asset.serial_number)
    return asset


# ---------- Handouts ----------
def hand_out(
    db: Session,
    asset_id: str,
    holder: str,
    department: str,
    purpose: Optional[str] = None,
    *,
    actor: Optional[str] = None,
) -> HandoutResult:
    with _transaction(db, asset_id, "hand out"):
        asset = registry.get(db, asset_id)
        if asset.status != "available":
            raise IllegalTransition(asset.status, "handed-out", "hand out")

        handout = handout_ledger.open(db, asset_id, holder, department, purpose, commit=False)
        asset = registry.set_status(db, asset_id, "handed-out", assigned_to=handout.holder, commit=False)
        crud.record_activity(
            db,
            kind="handout",
            asset_id=asset_id,
            ref_id=handout.id,
            message=f"Laptop {asset_id} handed out to {handout.holder} ({handout.department})",
            actor=actor,
        )
        check_asset_invariants(db, asset_id)

    logger.info("handout %s opened asset=%s holder=%s", handout.id, asset_id, handout.holder)
    return HandoutResult(handout=handout, asset=asset)


def return_asset(db: Session, handout_id: str, *, actor: Optional[str] = None) -> HandoutResult:
    asset_id = handout_ledger.get(db, handout_id).asset_id

    with _transaction(db, asset_id, "return"):
        handout = handout_ledger.get(db, handout_id)
        if handout.status != "active":
            raise AlreadyClosed(handout_id)
        asset = registry.get(db, asset_id)
        if asset.status != "handed-out":
            raise IllegalTransition(asset.status, "available", "return")

        handout = handout_ledger.close(db, handout_id, reason="returned", commit=False)
        asset = registry.set_status(db, asset_id, "available", commit=False)
        crud.record_activity(
            db,
            kind="return",
            asset_id=asset_id,
            ref_id=handout.id,
            message=f"Laptop {asset_id} returned by {handout.holder} ({handout.department})",
            actor=actor,
        )
        check_asset_invariants(db, asset_id)

    logger.info("handout %s returned asset=%s", handout.id, asset_id)
    return HandoutResult(handout=handout, asset=asset)


# ---------- Repairs ----------
def open_repair(
    db: Session,
    asset_id: str,
    issue: str,
    technician: str,
    cost: float = 0.0,
    priority: str = "medium",
    *,
    actor: Optional[str] = None,
) -> RepairOpened:
    """Put an asset under repair.

    A handed-out laptop has its active handout closed (``closed_reason``
    ``repair``) in the same transaction, so the asset never ends up both
    assigned and in the workshop.
    """
    with _transaction(db, asset_id, "open repair"):
        asset = registry.get(db, asset_id)
        if asset.status == "under-repair":
            current = repair_ledger.open_for(db, asset_id)
            if current is not None:
                raise RepairInProgress(asset_id, current.id)
        if asset.status not in ("available", "handed-out"):
            raise IllegalTransition(asset.status, "under-repair", "open repair")

        closed = None
        if asset.status == "handed-out":
            closed = _force_close_handout(
                db, asset_id, reason="repair", actor=actor, why=f"laptop {asset_id} sent to repair"
            )

        ticket = repair_ledger.open(db, asset_id, issue, technician, cost, priority, commit=False)
        asset = registry.set_status(db, asset_id, "under-repair", commit=False)
        crud.record_activity(
            db,
            kind="repair",
            asset_id=asset_id,
            ref_id=ticket.id,
            message=f"Repair {ticket.id} opened for laptop {asset_id}: {ticket.issue}",
            actor=actor,
        )
        check_asset_invariants(db, asset_id)

    logger.info("repair %s opened asset=%s priority=%s cost=%.2f", ticket.id, asset_id, ticket.priority, ticket.cost)
    return RepairOpened(ticket=ticket, asset=asset, closed_handout=closed)


def start_repair(db: Session, ticket_id: str, *, actor: Optional[str] = None) -> RepairResult:
    asset_id = repair_ledger.get(db, ticket_id).asset_id

    with _transaction(db, asset_id, "start repair"):
        asset = registry.get(db, asset_id)
        if asset.status != "under-repair":
            raise IllegalTransition(asset.status, None, "start repair")

        ticket = repair_ledger.advance(db, ticket_id, "in-progress", commit=False)
        crud.record_activity(
            db,
            kind="repair",
            asset_id=asset_id,
            ref_id=ticket.id,
            message=f"Repair {ticket.id} started by {ticket.technician}",
            actor=actor,
        )
        check_asset_invariants(db, asset_id)

    logger.info("repair %s in progress asset=%s", ticket.id, asset_id)
    return RepairResult(ticket=ticket, asset=asset)


def close_repair(db: Session, ticket_id: str, outcome: str, *, actor: Optional[str] = None) -> RepairResult:
    """Finish a repair as ``completed`` or ``cancelled``; the asset goes back to available.

    Completing a ticket that was never started walks it through
    ``in-progress`` first, so the ticket history stays a legal path.
    """
    if outcome not in ("completed", "cancelled"):
        raise InvalidInput("outcome must be 'completed' or 'cancelled'")

    asset_id = repair_ledger.get(db, ticket_id).asset_id

    with _transaction(db, asset_id, "close repair"):
        ticket = repair_ledger.get(db, ticket_id)
        if ticket.status not in OPEN_REPAIR_STATUSES:
            raise IllegalTransition(ticket.status, outcome, "close repair")
        asset = registry.get(db, asset_id)
        if asset.status != "under-repair":
            raise IllegalTransition(asset.status, "available", "close repair")

        if outcome == "completed" and ticket.status == "pending":
            repair_ledger.advance(db, ticket_id, "in-progress", commit=False)
        ticket = repair_ledger.advance(db, ticket_id, outcome, commit=False)
        asset = registry.set_status(db, asset_id, "available", commit=False)
        crud.record_activity(
            db,
            kind="repair",
            asset_id=asset_id,
            ref_id=ticket.id,
            message=(
                f"Repair completed for laptop {asset_id}"
                if outcome == "completed"
                else f"Repair {ticket.id} cancelled for laptop {asset_id}"
            ),
            actor=actor,
        )
        check_asset_invariants(db, asset_id)

    logger.info("repair %s %s asset=%s", ticket.id, outcome, asset_id)
    return RepairResult(ticket=ticket, asset=asset)


# ---------- Out of order ----------
def mark_out_of_order(db: Session, asset_id: str, reason: Optional[str] = None, *, actor: Optional[str] = None) -> Asset:
    with _transaction(db, asset_id, "mark out of order"):
        asset = registry.get(db, asset_id)
        if asset.status not in ("under-repair", "available"):
            raise IllegalTransition(asset.status, "out-of-order", "mark out of order")

        _cancel_open_ticket(db, asset_id, actor=actor, why="laptop marked out of order")
        asset = registry.set_status(db, asset_id, "out-of-order", commit=False)
        crud.record_activity(
            db,
            kind="status",
            asset_id=asset_id,
            message=f"Laptop {asset_id} marked out of order" + (f": {reason}" if reason else ""),
            actor=actor,
        )
        check_asset_invariants(db, asset_id)

    logger.info("asset %s out of order reason=%s", asset_id, reason)
    return asset


def retire(db: Session, asset_id: str, reason: Optional[str] = None, *, actor: Optional[str] = None) -> Asset:
    with _transaction(db, asset_id, "retire"):
        asset = registry.get(db, asset_id)
        if asset.status == "out-of-order":
            raise IllegalTransition(asset.status, "out-of-order", "retire")

        _force_close_handout(db, asset_id, reason="retired", actor=actor, why=f"laptop {asset_id} retired")
        _cancel_open_ticket(db, asset_id, actor=actor, why="laptop retired")
        asset = registry.set_status(db, asset_id, "out-of-order", commit=False)
        crud.record_activity(
            db,
            kind="status",
            asset_id=asset_id,
            message=f"Laptop {asset_id} retired" + (f": {reason}" if reason else ""),
            actor=actor,
        )
        check_asset_invariants(db, asset_id)

    logger.warning("asset %s retired by %s reason=%s", asset_id, actor or "-", reason)
    return asset


def reinstate(db: Session, asset_id: str, *, actor: Optional[str] = None) -> Asset:
    with _transaction(db, asset_id, "reinstate"):
        asset = registry.get(db, asset_id)
        if asset.status != "out-of-order":
            raise IllegalTransition(asset.status, "available", "reinstate")

        asset = registry.set_status(db, asset_id, "available", commit=False)
        crud.record_activity(
            db,
            kind="status",
            asset_id=asset_id,
            message=f"Laptop {asset_id} reinstated to inventory",
            actor=actor,
        )
        check_asset_invariants(db, asset_id)

    logger.warning("asset %s reinstated by %s", asset_id, actor or "-")
    return asset
