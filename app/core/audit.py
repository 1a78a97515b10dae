"""Audit events returned by mutations and written to the activity log by the caller."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class AuditEvent:
    """Activity log entry produced by a mutation. The actor is added at dispatch."""
    action_type: str
    description: str
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
