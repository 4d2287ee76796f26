"""Pipeline status events: collection and logging."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

logger = logging.getLogger("resume_analyzer.pipeline")


@dataclass
class PipelineEvent:
    """A single state transition observed during an analysis."""

    timestamp: datetime
    state: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)


class PipelineObserver:
    """
    Status listener that keeps a transition history and logs it.

    Register with ``UploadOrchestrator.add_listener``; the orchestrator calls
    the observer with every new ``PipelineStatus``.
    """

    def __init__(self, run_label: Optional[str] = None, max_events: int = 200) -> None:
        self.events: List[PipelineEvent] = []
        self.run_label = run_label
        self.max_events = max_events

    def __call__(self, status: Any) -> None:
        event = PipelineEvent(
            timestamp=datetime.now(),
            state=status.state.value,
            message=status.message,
            data={"record_id": status.record_id} if status.record_id else {},
        )
        self.events.append(event)
        if len(self.events) > self.max_events:
            del self.events[: len(self.events) - self.max_events]

        prefix = f"[{self.run_label}] " if self.run_label else ""
        level = logging.WARNING if event.state == "failed" else logging.INFO
        logger.log(level, "%spipeline_state state=%s message=%r", prefix, event.state, event.message)

    def states(self) -> List[str]:
        return [event.state for event in self.events]
