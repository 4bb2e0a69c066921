"""Result models for account sync runs and batches."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

SyncMode = Literal["bootstrap", "incremental", "rebootstrap"]


class AccountSyncResult(BaseModel):
    """What one successful account run did."""

    tenant_id: str
    user_id: str
    mode: SyncMode
    cursor_before: Optional[str] = None
    cursor_after: Optional[str] = None
    pages: int = 0
    messages_seen: int = 0
    messages_inserted: int = 0
    messages_skipped: int = 0


class AccountOutcome(BaseModel):
    """Per-account entry of a batch: success with result, or the captured error."""

    tenant_id: str
    user_id: str
    email: Optional[str] = None
    status: Literal["success", "error"]
    result: Optional[AccountSyncResult] = None
    error_type: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "success"


class BatchReport(BaseModel):
    """Aggregate of one batch invocation."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    outcomes: list[AccountOutcome] = Field(default_factory=list)
    errors: dict[str, str] = Field(default_factory=dict)
    started_at: datetime
    finished_at: Optional[datetime] = None
