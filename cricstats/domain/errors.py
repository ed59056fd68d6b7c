"""
Error taxonomy for pipeline runs.

Fatal errors (everything except ``MemoryDegraded``) abort the current run and
end the snapshot stream with an error snapshot. ``MemoryDegraded`` is only
ever logged: memory is an enhancement, the answer does not depend on it.
"""

from typing import Optional


class AgentError(Exception):
    """Base class for errors surfaced to the caller of a pipeline run"""

    def __init__(self, message: str, *, step: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.step = step

    @property
    def error_type(self) -> str:
        return type(self).__name__


class InputValidationError(AgentError):
    """The request is unusable, e.g. the question is missing"""


class MalformedModelOutput(AgentError):
    """The model reply could not be parsed into the expected JSON shape"""

    def __init__(self, message: str, *, raw: Optional[str] = None, step: Optional[str] = None):
        super().__init__(message, step=step)
        self.raw = raw


class RetrievalFailure(AgentError):
    """The structured query could not be executed against the record store"""


class GenerationFailure(AgentError):
    """The model collaborator failed to produce a reply"""


class MemoryDegraded(AgentError):
    """Conversation memory could not be loaded or written"""
