from pydantic import BaseModel
from typing import Optional, Literal
from datetime import datetime

AssetStatus = Literal["available", "handed-out", "under-repair", "out-of-order"]
HandoutStatus = Literal["active", "returned"]
RepairStatus = Literal["pending", "in-progress", "completed", "cancelled"]
Priority = Literal["low", "medium", "high", "urgent"]
RepairOutcome = Literal["completed", "cancelled"]

ASSET_STATUSES: tuple[str, ...] = ("available", "handed-out", "under-repair", "out-of-order")
HANDOUT_STATUSES: tuple[str, ...] = ("active", "returned")
REPAIR_STATUSES: tuple[str, ...] = ("pending", "in-progress", "completed", "cancelled")
OPEN_REPAIR_STATUSES: tuple[str, ...] = ("pending", "in-progress")
PRIORITIES: tuple[str, ...] = ("low", "medium", "high", "urgent")

class AssetIn(BaseModel):
    id: Optional[str] = None
    brand: str
    model: str
    serial_number: str
    specs: Optional[str] = None
    condition: Optional[str] = None
    status: AssetStatus = "available"

class Asset(BaseModel):
    id: str
    brand: str
    model: str
    serial_number: str
    specs: Optional[str] = None
    condition: Optional[str] = None
    status: AssetStatus = "available"
    assigned_to: Optional[str] = None
    created_at: datetime
    updated_at: datetime

class ListMeta(BaseModel):
    total: int
    limit: int
    offset: int
    total_pages: int

class HandoutIn(BaseModel):
    holder: str
    department: str
    purpose: Optional[str] = None

class Handout(BaseModel):
    id: str
    asset_id: str
    holder: str
    department: str
    purpose: Optional[str] = None
    status: HandoutStatus
    opened_at: datetime
    closed_at: Optional[datetime] = None
    closed_reason: Optional[str] = None

class RepairIn(BaseModel):
    issue: str
    technician: str
    cost: float = 0.0
    priority: Priority = "medium"

class RepairClose(BaseModel):
    outcome: RepairOutcome

class RepairTicket(BaseModel):
    id: str
    asset_id: str
    issue: str
    technician: str
    cost: float
    priority: Priority
    status: RepairStatus
    created_at: datetime
    completed_at: Optional[datetime] = None
    updated_at: datetime

class ReasonIn(BaseModel):
    reason: Optional[str] = None

class Activity(BaseModel):
    id: int
    kind: str
    asset_id: str
    ref_id: Optional[str] = None
    message: str
    actor: Optional[str] = None
    created_at: datetime

class RepairOpened(BaseModel):
    """Result of opening a repair; carries the handout closed on the way, if any."""
    ticket: RepairTicket
    asset: Asset
    closed_handout: Optional[Handout] = None

class HandoutResult(BaseModel):
    handout: Handout
    asset: Asset

class RepairResult(BaseModel):
    ticket: RepairTicket
    asset: Asset

class FleetStats(BaseModel):
    total_assets: int
    assets_by_status: dict[str, int]
    total_handouts: int
    active_handouts: int
    returned_handouts: int
    departments: int
    total_repairs: int
    pending_repairs: int
    in_progress_repairs: int
    total_repair_cost: float
