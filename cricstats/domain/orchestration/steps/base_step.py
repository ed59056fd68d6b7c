from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Any, Optional

from cricstats.domain.models.session_state import SessionState


@dataclass
class StepResult:
    """Field updates produced by a step and the label the engine should record"""
    label: str
    updates: Dict[str, Any] = field(default_factory=dict)


class PipelineStep(ABC):
    """Base class for the steps of the question pipeline.

    The engine calls ``should_run`` first; when it returns False the step body
    is never invoked and ``skip_label`` is recorded instead.
    """

    name: str = ""
    label: str = ""
    skip_label: Optional[str] = None

    def should_run(self, state: SessionState) -> bool:
        """Precondition over the session state"""
        return True

    @abstractmethod
    async def run(self, state: SessionState) -> StepResult:
        """Process the state and return the updates to apply"""
        pass

    def skipped_label(self) -> str:
        return self.skip_label or f"{self.label} (Skipped)"

    def get_info(self) -> Dict[str, Any]:
        """Get step information"""
        return {
            "name": self.name,
            "label": self.label,
            "skip_label": self.skipped_label(),
        }
