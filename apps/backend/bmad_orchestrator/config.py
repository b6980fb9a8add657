"""
BMAD Orchestrator Configuration
===============================

Phase ordering, execution modes, project directory layout, agent file
mapping and content-bundle location for the BMAD workflow orchestrator.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class Phase(str, Enum):
    """BMAD project phases, declared in their fixed progression order."""

    ANALYSIS = "analysis"
    PLANNING = "planning"
    SOLUTIONING = "solutioning"
    IMPLEMENTATION = "implementation"

    @property
    def rank(self) -> int:
        return list(Phase).index(self)

    @property
    def label(self) -> str:
        return self.value.capitalize()


PHASE_ORDER: tuple[Phase, ...] = tuple(Phase)


class WorkflowMode(str, Enum):
    """How the executing agent moves through a workflow's steps."""

    NORMAL = "normal"  # Halt after every step for user confirmation
    YOLO = "yolo"  # Continue autonomously, auto-select [C] at checkpoints


# --- Content bundle ---

# The BMad method files (agents, workflows, step files) are not part of the
# orchestrator itself. By default they live next to this package; hosts can
# point elsewhere with the plugin config or the environment.
_BMAD_PKG_DIR = Path(__file__).resolve().parent
BMAD_METHOD_DIR = _BMAD_PKG_DIR / "bmad-method"

BMAD_METHOD_PATH_ENV = "BMAD_METHOD_PATH"
BMAD_METHOD_PATH_KEY = "bmadMethodPath"

# Optional YAML file replacing the built-in workflow catalogue
WORKFLOW_CATALOGUE_KEY = "workflowCatalogue"

# Relative references starting with one of these resolve against the bundle
# root rather than the referencing step's directory.
METHOD_ROOT_PREFIXES: tuple[str, ...] = ("bmm/", "core/")


# --- Project layout ---

BMAD_DIR_NAME = "_bmad"
STATE_FILE_NAME = "state.json"
LOCK_FILE_NAME = ".state.lock"
PROJECT_CONFIG_NAME = "config.yaml"

# Bundle module directories mirrored into <project>/_bmad/
BMAD_MODULE_DIRS: tuple[str, ...] = ("core", "bmm")

OUTPUT_FOLDER = "_bmad-output"
PLANNING_ARTIFACTS_SUBDIR = "planning-artifacts"
IMPLEMENTATION_ARTIFACTS_SUBDIR = "implementation-artifacts"
PRODUCT_KNOWLEDGE_SUBDIR = "docs"


# --- Agent-to-file mapping ---
# Agent ids used by the workflow catalogue, mapped to persona YAML files
# relative to the bundle root. tech-writer lives in its own subdirectory.

AGENT_FILES: dict[str, str] = {
    "bmad-master": "core/agents/bmad-master.agent.yaml",
    "analyst": "bmm/agents/analyst.agent.yaml",
    "architect": "bmm/agents/architect.agent.yaml",
    "pm": "bmm/agents/pm.agent.yaml",
    "sm": "bmm/agents/sm.agent.yaml",
    "dev": "bmm/agents/dev.agent.yaml",
    "qa": "bmm/agents/qa.agent.yaml",
    "ux-designer": "bmm/agents/ux-designer.agent.yaml",
    "quick-flow-solo-dev": "bmm/agents/quick-flow-solo-dev.agent.yaml",
    "tech-writer": "bmm/agents/tech-writer/tech-writer.agent.yaml",
}


@dataclass(frozen=True)
class BMADSettings:
    """Process-wide settings shared by every orchestrator operation."""

    method_path: Path
    user_name: str = "User"
    communication_language: str = "english"
    document_output_language: str = "english"
    user_skill_level: str = "expert"
    output_folder: str = OUTPUT_FOLDER


def resolve_method_path(plugin_config: Mapping[str, object] | None = None) -> Path:
    """Locate the BMad method content bundle.

    Lookup order: ``bmadMethodPath`` in the host plugin config, the
    ``BMAD_METHOD_PATH`` environment variable, then the bundled default.
    """
    configured = (plugin_config or {}).get(BMAD_METHOD_PATH_KEY)
    if isinstance(configured, str) and configured:
        return Path(configured).expanduser()

    from_env = os.environ.get(BMAD_METHOD_PATH_ENV)
    if from_env:
        return Path(from_env).expanduser()

    return BMAD_METHOD_DIR


def load_settings(plugin_config: Mapping[str, object] | None = None) -> BMADSettings:
    """Build settings from the host plugin config mapping.

    Recognised keys besides ``bmadMethodPath``: ``userName``,
    ``communicationLanguage``, ``documentOutputLanguage`` and
    ``userSkillLevel``. Unknown keys are ignored.
    """
    config = plugin_config or {}
    overrides = {}
    for key, field_name in (
        ("userName", "user_name"),
        ("communicationLanguage", "communication_language"),
        ("documentOutputLanguage", "document_output_language"),
        ("userSkillLevel", "user_skill_level"),
    ):
        value = config.get(key)
        if isinstance(value, str) and value:
            overrides[field_name] = value

    return BMADSettings(method_path=resolve_method_path(config), **overrides)


def template_variables(
    settings: BMADSettings, project_path: Path, project_name: str
) -> dict[str, str]:
    """Variables substituted into step content and step/output paths.

    Keys match the BMad module.yaml and core config conventions, so step
    files can use either ``{key}`` or ``{{key}}``.
    """
    output_root = project_path / settings.output_folder
    return {
        "project-root": str(project_path),
        "project_name": project_name,
        "user_name": settings.user_name,
        "communication_language": settings.communication_language,
        "document_output_language": settings.document_output_language,
        "user_skill_level": settings.user_skill_level,
        "output_folder": settings.output_folder,
        "planning_artifacts": str(output_root / PLANNING_ARTIFACTS_SUBDIR),
        "implementation_artifacts": str(output_root / IMPLEMENTATION_ARTIFACTS_SUBDIR),
        "product_knowledge": str(project_path / PRODUCT_KNOWLEDGE_SUBDIR),
    }
