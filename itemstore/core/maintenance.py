"""
Maintenance routines: pruning set memberships left behind by expired items,
and purging expired records from stores that keep them on disk.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .errors import StoreUnavailableError
from .schema import ALL_ITEMS_SET, CATEGORY_SET_PREFIX
from .store import IKeyValueStore
from ..util.logging import logger


@dataclass
class MaintenanceReport:
    """Maintenance operation report."""
    operation: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    issues_found: int = 0
    issues_resolved: int = 0
    actions_taken: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert report to dictionary for serialization."""
        data = {
            "operation": self.operation,
            "started_at": self.started_at.isoformat(),
            "issues_found": self.issues_found,
            "issues_resolved": self.issues_resolved,
            "actions_taken": self.actions_taken,
            "errors": self.errors,
            "metadata": self.metadata
        }
        if self.completed_at:
            data["completed_at"] = self.completed_at.isoformat()
        return data

    def summary(self) -> str:
        """Short text block for the maintenance CLI."""
        outcome = "failed" if self.errors else "ok"
        lines = [f"{self.operation}: {outcome}, found {self.issues_found}, resolved {self.issues_resolved}"]
        for key in ("sets_checked", "members_checked", "dry_run"):
            if key in self.metadata:
                lines.append(f"  {key}: {self.metadata[key]}")
        lines.extend(f"  error: {error}" for error in self.errors)
        return "\n".join(lines)


def sweep_dangling_memberships(store: IKeyValueStore, dry_run: bool = False) -> MaintenanceReport:
    """
    Remove set members whose item no longer exists.

    Membership sets are not expired together with their items, so they
    accumulate ids of expired items. Searches skip those ids anyway; this
    only reclaims space.
    """
    report = MaintenanceReport(operation="sweep_memberships", started_at=datetime.now())
    start = time.time()

    with store.session() as s:
        set_keys = [ALL_ITEMS_SET] + s.set_keys(CATEGORY_SET_PREFIX)
        checked = 0
        for set_key in set_keys:
            for member in s.set_members(set_key):
                checked += 1
                if s.get(member) is not None:
                    continue

                report.issues_found += 1
                if dry_run:
                    continue
                try:
                    s.set_remove(set_key, member)
                except StoreUnavailableError as e:
                    report.errors.append(f"{set_key}/{member}: {e}")
                    continue
                report.issues_resolved += 1
                report.actions_taken.append(f"removed {member} from {set_key}")

    report.completed_at = datetime.now()
    report.metadata = {"sets_checked": len(set_keys), "members_checked": checked, "dry_run": dry_run}
    logger.log_maintenance("sweep_memberships", start, time.time(),
                           status="failed" if report.errors else "success",
                           details=report.metadata)
    return report


def purge_expired_records(store: IKeyValueStore) -> MaintenanceReport:
    """Physically delete expired records."""
    report = MaintenanceReport(operation="purge_expired", started_at=datetime.now())
    start = time.time()

    with store.session() as s:
        removed = s.purge_expired()

    report.issues_found = removed
    report.issues_resolved = removed
    if removed:
        report.actions_taken.append(f"purged {removed} expired records")
    report.completed_at = datetime.now()
    logger.log_maintenance("purge_expired", start, time.time(), details={"removed": removed})
    return report
