"""Explicit per-request caller context passed into the orchestrator and reconciliation."""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RequestContext:
    client_id: str
    request_id: Optional[str] = None
