"""
Resolution events for the observability collaborator.
One event is emitted per resolution; storage and aggregation live elsewhere.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, Optional

import structlog

from transpareneats.models.product import CacheTier, ResolutionOutcome

logger = structlog.get_logger(__name__)


@dataclass
class ResolutionEvent:
    barcode: str
    outcome: Optional[ResolutionOutcome]
    source: Optional[str]
    cache_tier: Optional[CacheTier]
    timestamp: datetime
    success: bool = False
    adapter_errors: int = 0
    coalesced: bool = False
    barcode_format: str = "unknown"
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["outcome"] = self.outcome.value if self.outcome else None
        data["cache_tier"] = self.cache_tier.value if self.cache_tier else None
        data["timestamp"] = self.timestamp.isoformat()
        return data


class IResolutionEventSink(ABC):
    """Receives one event per resolution."""

    @abstractmethod
    async def emit(self, event: ResolutionEvent) -> None:
        pass


class StructlogEventSink(IResolutionEventSink):
    """Writes resolution events to the structured log."""

    async def emit(self, event: ResolutionEvent) -> None:
        logger.info("Product resolution", **event.to_dict())
