"""
BMAD Orchestrator
=================

Workflow orchestration for the BMAD Method (Big Method of AI-Driven
Development): tracks a project's phase, its single active workflow, the
current step inside it and the history of completed workflows, and hands
step files to the executing agent one at a time.

Main Components:
- config: Phases, modes, directory layout, content-bundle location
- catalogue: Workflow definitions and prerequisite graph
- steps: Step file parsing, ordering and successor resolution
- personas: Load and format BMAD agent personas for prompt injection
- state: Persisted project state (atomic writes, advisory lock)
- artifacts: Project directory structure and artifact persistence
- lifecycle: The workflow state machine behind every tool
- tools: Named tool entry points for a host agent runtime
"""

from .artifacts import create_bmad_structure, load_artifact, save_artifact
from .catalogue import (
    WorkflowCatalogue,
    WorkflowDefinition,
    default_catalogue,
    load_catalogue,
)
from .config import (
    PHASE_ORDER,
    BMADSettings,
    Phase,
    WorkflowMode,
    load_settings,
    resolve_method_path,
)
from .errors import (
    AlreadyInitializedError,
    BMADError,
    CatalogueError,
    ContentError,
    NotInitializedError,
    PreconditionError,
    StateError,
    StructureIncompleteError,
    UnknownIdentifierError,
)
from .lifecycle import ToolResult, WorkflowLifecycle
from .personas import AgentPersona, format_persona_block, load_persona
from .state import ProjectState, read_state, write_state
from .steps import StepUnit, load_step
from .tools import BMADTool, build_tools, create_tools

__all__ = [
    # Config
    "Phase",
    "PHASE_ORDER",
    "WorkflowMode",
    "BMADSettings",
    "load_settings",
    "resolve_method_path",
    # Errors
    "BMADError",
    "NotInitializedError",
    "AlreadyInitializedError",
    "UnknownIdentifierError",
    "PreconditionError",
    "ContentError",
    "StructureIncompleteError",
    "CatalogueError",
    "StateError",
    # Catalogue
    "WorkflowDefinition",
    "WorkflowCatalogue",
    "default_catalogue",
    "load_catalogue",
    # Steps
    "StepUnit",
    "load_step",
    # Personas
    "AgentPersona",
    "load_persona",
    "format_persona_block",
    # State
    "ProjectState",
    "read_state",
    "write_state",
    # Artifacts
    "create_bmad_structure",
    "save_artifact",
    "load_artifact",
    # Lifecycle
    "ToolResult",
    "WorkflowLifecycle",
    # Tools
    "BMADTool",
    "build_tools",
    "create_tools",
]
