"""
Job Schemas

Pydantic schemas for the jobs API.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel


class JobInfo(BaseModel):
    """A registered job and its schedule."""
    name: str
    description: str
    trigger: str
    trigger_args: Dict[str, int]
    last_run: Optional[datetime] = None


class JobsListResponse(BaseModel):
    jobs: List[JobInfo]


class JobRunResponse(BaseModel):
    """Counters of a finished run."""
    job: str
    forced: bool
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    tenants: int
    checked: int
    triggered: int
    notifications_created: int
    notifications_updated: int
    emails_sent: int
    emails_failed: int
    state_changes: int
    skipped: int
    failed: int
    errors: List[dict]
