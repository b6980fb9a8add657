"""
BMAD Project State
==================

Persisted single source of truth for a BMAD project: current phase, the
active workflow pointer and the completed-workflow history.

Layout::

    project/
    └── _bmad/
        ├── state.json      # ProjectState, camelCase JSON
        └── .state.lock     # advisory lock held during read-modify-write
"""

import json
import logging
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .config import BMAD_DIR_NAME, LOCK_FILE_NAME, STATE_FILE_NAME, Phase, WorkflowMode
from .errors import StateError

# fcntl is POSIX only; elsewhere the lock is a no-op and callers must
# serialise operations per project themselves.
try:
    import fcntl

    HAS_FCNTL = True
except ImportError:
    HAS_FCNTL = False

logger = logging.getLogger(__name__)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class CompletedWorkflow:
    """History entry written once when a workflow completes."""

    id: str
    agent_id: str
    output_file: str
    completed_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "agentId": self.agent_id,
            "outputFile": self.output_file,
            "completedAt": self.completed_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CompletedWorkflow":
        return cls(
            id=data["id"],
            agent_id=data["agentId"],
            output_file=data.get("outputFile") or "",
            completed_at=data["completedAt"],
        )


@dataclass
class ActiveWorkflow:
    """Pointer to the workflow currently in progress.

    ``current_step`` is the step number of the loaded file and is what the
    agent sees. Continuation files (step-01b) share their primary's number,
    so the duplicate-save guard runs on ``step_visits`` instead: it grows by
    one for every step loaded, and a save is refused once
    ``last_saved_visit`` has caught up with it.
    """

    id: str
    agent_id: str
    agent_name: str
    mode: WorkflowMode
    current_step: int
    total_steps: int | None
    current_step_file: str
    output_file: str
    started_at: str
    last_saved_step: int | None = None
    step_visits: int = 1
    last_saved_visit: int | None = None

    @property
    def step_label(self) -> str:
        if self.total_steps:
            return f"{self.current_step} of {self.total_steps}"
        return str(self.current_step)

    @property
    def already_saved(self) -> bool:
        return self.last_saved_visit is not None and self.last_saved_visit >= self.step_visits

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "agentId": self.agent_id,
            "agentName": self.agent_name,
            "mode": self.mode.value,
            "currentStep": self.current_step,
            "totalSteps": self.total_steps,
            "currentStepFile": self.current_step_file,
            "outputFile": self.output_file,
            "startedAt": self.started_at,
            "stepVisits": self.step_visits,
        }
        if self.last_saved_step is not None:
            data["lastSavedStep"] = self.last_saved_step
        if self.last_saved_visit is not None:
            data["lastSavedVisit"] = self.last_saved_visit
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ActiveWorkflow":
        return cls(
            id=data["id"],
            agent_id=data["agentId"],
            agent_name=data.get("agentName") or data["agentId"],
            mode=WorkflowMode(data["mode"]),
            current_step=int(data["currentStep"]),
            total_steps=data.get("totalSteps"),
            current_step_file=data["currentStepFile"],
            output_file=data.get("outputFile") or "",
            started_at=data["startedAt"],
            last_saved_step=data.get("lastSavedStep"),
            step_visits=int(data.get("stepVisits") or data["currentStep"]),
            last_saved_visit=data.get("lastSavedVisit", data.get("lastSavedStep")),
        )


@dataclass
class ProjectState:
    """Everything the orchestrator persists about one project."""

    project_name: str
    project_path: str
    created_at: str
    current_phase: Phase = Phase.ANALYSIS
    active_workflow: ActiveWorkflow | None = None
    completed_workflows: list[CompletedWorkflow] = field(default_factory=list)

    @property
    def completed_ids(self) -> list[str]:
        return [w.id for w in self.completed_workflows]

    def to_dict(self) -> dict[str, Any]:
        return {
            "projectName": self.project_name,
            "projectPath": self.project_path,
            "createdAt": self.created_at,
            "currentPhase": self.current_phase.value,
            "activeWorkflow": self.active_workflow.to_dict() if self.active_workflow else None,
            "completedWorkflows": [w.to_dict() for w in self.completed_workflows],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProjectState":
        active = data.get("activeWorkflow")
        return cls(
            project_name=data["projectName"],
            project_path=data["projectPath"],
            created_at=data["createdAt"],
            current_phase=Phase(data.get("currentPhase", Phase.ANALYSIS.value)),
            active_workflow=ActiveWorkflow.from_dict(active) if active else None,
            completed_workflows=[
                CompletedWorkflow.from_dict(w) for w in data.get("completedWorkflows") or []
            ],
        )


def bmad_dir(project_path: Path | str) -> Path:
    return Path(project_path) / BMAD_DIR_NAME


def state_path(project_path: Path | str) -> Path:
    return bmad_dir(project_path) / STATE_FILE_NAME


def create_initial_state(project_path: Path | str, project_name: str) -> ProjectState:
    """Fresh state: analysis phase, nothing active, empty history."""
    return ProjectState(
        project_name=project_name,
        project_path=str(project_path),
        created_at=utc_now(),
    )


def read_state(project_path: Path | str) -> ProjectState | None:
    """Load the project state.

    Returns None when the project has no state file (not initialized) or
    when the file cannot be parsed into a valid state.

    Raises:
        StateError: If the state file exists but cannot be read.
    """
    path = state_path(project_path)
    if not path.is_file():
        return None

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise StateError(f"Failed to read state from {path}: {e}") from e

    try:
        return ProjectState.from_dict(json.loads(raw))
    except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
        logger.warning("Ignoring unparsable BMAD state at %s: %s", path, e)
        return None


def write_state(project_path: Path | str, state: ProjectState) -> None:
    """Persist the project state atomically.

    The document is written to a temporary file in ``_bmad/``, flushed to
    disk and moved over ``state.json`` with os.replace(), so readers see
    either the old or the new document, never a partial one.

    Raises:
        StateError: If the write fails.
    """
    path = state_path(project_path)
    temp_path: str | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=".state-", suffix=".tmp")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(state.to_dict(), f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_path, path)
    except OSError as e:
        if temp_path and os.path.exists(temp_path):
            os.unlink(temp_path)
        raise StateError(f"Failed to save state to {path}: {e}") from e


@contextmanager
def project_lock(project_path: Path | str) -> Iterator[None]:
    """Hold an exclusive advisory lock on the project's state.

    Only taken when ``_bmad/`` already exists; a project that has not been
    initialized has nothing to protect yet.
    """
    lock_dir = bmad_dir(project_path)
    if not HAS_FCNTL or not lock_dir.is_dir():
        yield
        return

    with open(lock_dir / LOCK_FILE_NAME, "a") as f:
        fcntl.flock(f.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(f.fileno(), fcntl.LOCK_UN)
