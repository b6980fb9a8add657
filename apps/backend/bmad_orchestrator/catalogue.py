"""
BMAD Workflow Catalogue
=======================

Static registry of BMad Method workflow definitions: which agent runs each
workflow, where its files live inside the content bundle, and which
workflows must be completed before it becomes available.

The catalogue is an immutable object built once at process start and handed
to the lifecycle controller, so tests can substitute their own.
"""

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path

import yaml

from .config import Phase
from .errors import CatalogueError, ContentError, UnknownIdentifierError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkflowDefinition:
    """One workflow of the BMad Method.

    Attributes:
        id: Unique workflow id, e.g. "create-product-brief".
        name: Display name.
        description: One-line summary shown in listings.
        phase: Phase this workflow belongs to.
        agent_id: Persona that executes the workflow (see config.AGENT_FILES).
        workflow_file: Workflow definition file, relative to the bundle root.
        steps_dir: Step-file directory relative to the bundle root, or None
            when the workflow file is the whole instruction body.
        requires: Ids of workflows that must be completed first.
    """

    id: str
    name: str
    description: str
    phase: Phase
    agent_id: str
    workflow_file: str
    steps_dir: str | None = None
    requires: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "WorkflowDefinition":
        """Build a definition from a YAML/JSON mapping.

        Accepts the camelCase keys used by the plugin content files as well
        as snake_case.
        """

        def pick(*keys: str, default: object = None) -> object:
            for key in keys:
                if data.get(key) is not None:
                    return data[key]
            if default is None:
                raise KeyError(keys[0])
            return default

        try:
            requires = pick("requires", default=())
            if isinstance(requires, str):
                requires = (requires,)
            steps_dir = pick("stepsDir", "steps_dir", default="")
            return cls(
                id=str(pick("id")),
                name=str(pick("name", default=data.get("id", ""))),
                description=str(pick("description", default="")),
                phase=Phase(pick("phase")),
                agent_id=str(pick("agentId", "agent_id")),
                workflow_file=str(pick("workflowFile", "workflow_file")),
                steps_dir=str(steps_dir) if steps_dir else None,
                requires=tuple(str(r) for r in requires),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise CatalogueError(f"Invalid workflow definition {data!r}: {e}") from e


class WorkflowCatalogue:
    """Immutable, validated collection of workflow definitions.

    Declaration order is preserved by every query. Construction fails with
    CatalogueError on duplicate ids, prerequisites that name unknown
    workflows, or a cycle in the ``requires`` graph.
    """

    def __init__(self, definitions: Iterable[WorkflowDefinition]) -> None:
        self._definitions = tuple(definitions)
        self._by_id: dict[str, WorkflowDefinition] = {}
        for definition in self._definitions:
            if definition.id in self._by_id:
                raise CatalogueError(f"Duplicate workflow id: {definition.id}")
            self._by_id[definition.id] = definition
        self._validate_requires()

    def __iter__(self) -> Iterator[WorkflowDefinition]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, workflow_id: object) -> bool:
        return workflow_id in self._by_id

    def get_workflow(self, workflow_id: str) -> WorkflowDefinition | None:
        """Look up a workflow by exact id."""
        return self._by_id.get(workflow_id)

    def require_workflow(self, workflow_id: str) -> WorkflowDefinition:
        """Like get_workflow, but raise UnknownIdentifierError when absent."""
        definition = self._by_id.get(workflow_id)
        if definition is None:
            raise UnknownIdentifierError(
                f'Unknown workflow "{workflow_id}". '
                "Use `bmad_list_workflows` to see available options."
            )
        return definition

    def get_available_workflows(self, completed_ids: Iterable[str]) -> list[WorkflowDefinition]:
        """Workflows whose prerequisites are all in *completed_ids*.

        Already-completed workflows are included; callers that want only new
        work filter them out.
        """
        completed = set(completed_ids)
        return [w for w in self._definitions if completed.issuperset(w.requires)]

    def get_workflows_by_phase(self, phase: Phase | str) -> list[WorkflowDefinition]:
        """Workflows belonging to *phase*, in declaration order."""
        phase = Phase(phase)
        return [w for w in self._definitions if w.phase == phase]

    def load_workflow_body(self, definition: WorkflowDefinition, method_path: Path) -> str:
        """Read a workflow's definition file from the content bundle."""
        path = method_path / definition.workflow_file
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise ContentError(f"Workflow file not readable: {path} ({e})") from e

    def _validate_requires(self) -> None:
        for definition in self._definitions:
            unknown = [r for r in definition.requires if r not in self._by_id]
            if unknown:
                raise CatalogueError(
                    f"Workflow {definition.id} requires unknown workflows: {', '.join(unknown)}"
                )

        # Depth-first search for back edges; the catalogue is small, so a
        # single pass at load time is enough.
        visiting: set[str] = set()
        done: set[str] = set()

        def visit(workflow_id: str, path: list[str]) -> None:
            if workflow_id in done:
                return
            if workflow_id in visiting:
                cycle = path[path.index(workflow_id):] + [workflow_id]
                raise CatalogueError(f"Prerequisite cycle: {' -> '.join(cycle)}")
            visiting.add(workflow_id)
            for required in self._by_id[workflow_id].requires:
                visit(required, path + [workflow_id])
            visiting.discard(workflow_id)
            done.add(workflow_id)

        for definition in self._definitions:
            visit(definition.id, [])


def load_catalogue(path: Path) -> WorkflowCatalogue:
    """Load a catalogue from a YAML file with a top-level ``workflows`` list.

    Raises:
        CatalogueError: If the file is missing, malformed, or the resulting
            catalogue fails validation.
    """
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise CatalogueError(f"Cannot read workflow catalogue {path}: {e}") from e

    entries = data.get("workflows") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        raise CatalogueError(f"Workflow catalogue {path} has no 'workflows' list")

    catalogue = WorkflowCatalogue(WorkflowDefinition.from_dict(entry) for entry in entries)
    logger.info("Loaded %d workflow definitions from %s", len(catalogue), path)
    return catalogue


def default_catalogue() -> WorkflowCatalogue:
    """The built-in BMad Method catalogue."""
    return WorkflowCatalogue(DEFAULT_WORKFLOWS)


# --- Built-in BMad Method workflows ---
# Paths are relative to the bundle root (see config.resolve_method_path).

_A = Phase.ANALYSIS
_P = Phase.PLANNING
_S = Phase.SOLUTIONING
_I = Phase.IMPLEMENTATION

DEFAULT_WORKFLOWS: tuple[WorkflowDefinition, ...] = (
    # Phase 1: Analysis
    WorkflowDefinition(
        "create-product-brief", "Create Product Brief",
        "Guided experience to nail down your product idea into an executive brief",
        _A, "analyst",
        "bmm/workflows/1-analysis/create-product-brief/workflow.md",
        "bmm/workflows/1-analysis/create-product-brief/steps",
    ),
    WorkflowDefinition(
        "market-research", "Market Research",
        "Market analysis, competitive landscape, customer needs and trends",
        _A, "analyst",
        "bmm/workflows/1-analysis/research/workflow-market-research.md",
        "bmm/workflows/1-analysis/research/market-steps",
    ),
    WorkflowDefinition(
        "domain-research", "Domain Research",
        "Industry domain deep dive, subject matter expertise and terminology",
        _A, "analyst",
        "bmm/workflows/1-analysis/research/workflow-domain-research.md",
        "bmm/workflows/1-analysis/research/domain-steps",
    ),
    WorkflowDefinition(
        "technical-research", "Technical Research",
        "Technical feasibility, architecture options and implementation approaches",
        _A, "analyst",
        "bmm/workflows/1-analysis/research/workflow-technical-research.md",
        "bmm/workflows/1-analysis/research/technical-steps",
    ),
    # Phase 2: Planning
    WorkflowDefinition(
        "create-prd", "Create PRD",
        "Produce Product Requirements Document through structured facilitation",
        _P, "pm",
        "bmm/workflows/2-plan-workflows/create-prd/workflow-create-prd.md",
        "bmm/workflows/2-plan-workflows/create-prd/steps-c",
        ("create-product-brief",),
    ),
    WorkflowDefinition(
        "validate-prd", "Validate PRD",
        "Validate PRD is comprehensive, lean, well organized and cohesive",
        _P, "pm",
        "bmm/workflows/2-plan-workflows/create-prd/workflow-validate-prd.md",
        "bmm/workflows/2-plan-workflows/create-prd/steps-v",
        ("create-prd",),
    ),
    WorkflowDefinition(
        "edit-prd", "Edit PRD",
        "Update an existing PRD",
        _P, "pm",
        "bmm/workflows/2-plan-workflows/create-prd/workflow-edit-prd.md",
        "bmm/workflows/2-plan-workflows/create-prd/steps-e",
        ("create-prd",),
    ),
    WorkflowDefinition(
        "create-ux-design", "Create UX Design",
        "Plan UX patterns, look and feel to inform architecture and implementation",
        _P, "ux-designer",
        "bmm/workflows/2-plan-workflows/create-ux-design/workflow.md",
        "bmm/workflows/2-plan-workflows/create-ux-design/steps",
        ("create-prd",),
    ),
    # Phase 3: Solutioning
    WorkflowDefinition(
        "create-architecture", "Create Architecture",
        "Document technical decisions for implementation consistency",
        _S, "architect",
        "bmm/workflows/3-solutioning/create-architecture/workflow.md",
        "bmm/workflows/3-solutioning/create-architecture/steps",
        ("create-prd",),
    ),
    WorkflowDefinition(
        "create-epics-and-stories", "Create Epics & Stories",
        "Transform PRD + Architecture into implementation-ready stories",
        _S, "pm",
        "bmm/workflows/3-solutioning/create-epics-and-stories/workflow.md",
        "bmm/workflows/3-solutioning/create-epics-and-stories/steps",
        ("create-prd", "create-architecture"),
    ),
    WorkflowDefinition(
        "check-implementation-readiness", "Implementation Readiness Check",
        "Validate PRD, Architecture, and Epics are aligned before coding",
        _S, "architect",
        "bmm/workflows/3-solutioning/check-implementation-readiness/workflow.md",
        "bmm/workflows/3-solutioning/check-implementation-readiness/steps",
        ("create-prd", "create-architecture", "create-epics-and-stories"),
    ),
    # Phase 4: Implementation
    WorkflowDefinition(
        "sprint-planning", "Sprint Planning",
        "Generate sprint-status.yaml to sequence all project tasks",
        _I, "sm",
        "bmm/workflows/4-implementation/sprint-planning/workflow.yaml",
        None,
        ("create-epics-and-stories",),
    ),
    WorkflowDefinition(
        "create-story", "Create Story",
        "Prepare story with all required context for dev agent",
        _I, "sm",
        "bmm/workflows/4-implementation/create-story/workflow.yaml",
        None,
        ("sprint-planning",),
    ),
    WorkflowDefinition(
        "dev-story", "Dev Story",
        "Implement story: write tests and code",
        _I, "dev",
        "bmm/workflows/4-implementation/dev-story/workflow.yaml",
        None,
        ("create-story",),
    ),
    WorkflowDefinition(
        "code-review", "Code Review",
        "Adversarial code review across multiple quality facets",
        _I, "dev",
        "bmm/workflows/4-implementation/code-review/workflow.yaml",
        None,
        ("dev-story",),
    ),
    # Quick flow
    WorkflowDefinition(
        "quick-spec", "Quick Spec",
        "Create implementation-ready tech spec through conversational discovery",
        _A, "quick-flow-solo-dev",
        "bmm/workflows/bmad-quick-flow/quick-spec/workflow.md",
        "bmm/workflows/bmad-quick-flow/quick-spec/steps",
    ),
    WorkflowDefinition(
        "quick-dev", "Quick Dev",
        "Implement tech spec end-to-end",
        _I, "quick-flow-solo-dev",
        "bmm/workflows/bmad-quick-flow/quick-dev/workflow.md",
        "bmm/workflows/bmad-quick-flow/quick-dev/steps",
        ("quick-spec",),
    ),
    # Supporting workflows
    WorkflowDefinition(
        "correct-course", "Course Correction",
        "Navigate major changes discovered mid-implementation",
        _I, "pm",
        "bmm/workflows/4-implementation/correct-course/workflow.yaml",
        None,
        ("sprint-planning",),
    ),
    WorkflowDefinition(
        "sprint-status", "Sprint Status",
        "View current sprint status and next recommended action",
        _I, "sm",
        "bmm/workflows/4-implementation/sprint-status/workflow.yaml",
        None,
        ("sprint-planning",),
    ),
    WorkflowDefinition(
        "retrospective", "Retrospective",
        "Party Mode review of all work completed across an epic",
        _I, "sm",
        "bmm/workflows/4-implementation/retrospective/workflow.yaml",
        None,
        ("sprint-planning",),
    ),
    WorkflowDefinition(
        "document-project", "Document Project",
        "Analyze an existing project to produce documentation for human and LLM",
        _A, "analyst",
        "bmm/workflows/document-project/workflow.yaml",
    ),
    WorkflowDefinition(
        "generate-project-context", "Generate Project Context",
        "Create project-context.md with critical rules for AI agents",
        _A, "analyst",
        "bmm/workflows/generate-project-context/workflow.md",
        "bmm/workflows/generate-project-context/steps",
    ),
    WorkflowDefinition(
        "qa-generate-e2e-tests", "QA Generate E2E Tests",
        "Generate automated end-to-end tests for existing features",
        _I, "qa",
        "bmm/workflows/qa-generate-e2e-tests/workflow.yaml",
        None,
        ("dev-story",),
    ),
    # Core workflows
    WorkflowDefinition(
        "brainstorming", "Brainstorm Project",
        "Expert guided facilitation through brainstorming techniques with a final report",
        _A, "analyst",
        "core/workflows/brainstorming/workflow.md",
        "core/workflows/brainstorming/steps",
    ),
)
