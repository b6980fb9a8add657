"""
BMAD Orchestrator Errors
========================

Exceptions raised by the catalogue, step sequencer, persona loader and state
store. The lifecycle controller converts them into error tool results, so
none of these escape an orchestrator operation.
"""


class BMADError(Exception):
    """Base class for all orchestrator failures."""


class NotInitializedError(BMADError):
    """Operation requires a project that has no persisted state yet."""

    def __init__(self, message: str = "Project not initialized. Run `bmad_init_project` first.") -> None:
        super().__init__(message)


class AlreadyInitializedError(BMADError):
    """Init was called for a project that already has state."""


class UnknownIdentifierError(BMADError):
    """An agent id or workflow id is not known."""


class PreconditionError(BMADError):
    """A lifecycle precondition does not hold (active workflow, missing
    prerequisites, duplicate save, empty content, no output destination)."""


class ContentError(BMADError):
    """A step, workflow or persona file is missing, unreadable or malformed."""


class StructureIncompleteError(BMADError):
    """Supporting project directories/files expected at workflow start are absent."""


class CatalogueError(BMADError):
    """The workflow catalogue is inconsistent (duplicate ids, unknown
    prerequisites, or a prerequisite cycle)."""


class StateError(BMADError):
    """The state file exists but could not be read or written."""
