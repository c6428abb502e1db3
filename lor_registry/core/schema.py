"""
Registry records - student records and the audit trail kept beside them.
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Dict, Optional


@dataclass(frozen=True)
class StudentRecord:
    id: int
    name: str
    email: str
    course: str
    requested: bool = False
    approved: bool = False

    @property
    def state(self) -> str:
        """Workflow state name: added, requested or approved."""
        if self.approved:
            return "approved"
        if self.requested:
            return "requested"
        return "added"

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class AuditEvent:
    id: int
    ts: datetime
    actor: str
    action: str  # add_student, authorize_approver, request_recommendation, approve_recommendation
    outcome: str  # success or an error_type
    student_id: Optional[int] = None
    detail: str = ""

    def to_dict(self) -> Dict:
        """Convert to dictionary for storage."""
        data = asdict(self)
        data['ts'] = self.ts.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> 'AuditEvent':
        """Create from dictionary (for loading from storage)."""
        data = dict(data)
        if isinstance(data['ts'], str):
            data['ts'] = datetime.fromisoformat(data['ts'])
        return cls(**data)
