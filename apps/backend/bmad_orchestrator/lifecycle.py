"""
BMAD Workflow Lifecycle
=======================

The workflow state machine: start a workflow, hand the executing agent one
step at a time, record the artifacts it produces and close the workflow
out. Each operation is a single read-modify-write of the project state.

Every public operation returns a ToolResult. Failures raised by the
catalogue, step sequencer, persona loader or state store are turned into
error results here, and the state file is only written once all checks and
content loads for an operation have succeeded.
"""

import functools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .artifacts import (
    create_bmad_structure,
    load_artifact,
    missing_structure,
    resolve_output_path,
    restore_artifact,
    save_artifact as write_artifact,
)
from .catalogue import WorkflowCatalogue, WorkflowDefinition
from .config import PHASE_ORDER, BMADSettings, WorkflowMode, template_variables
from .errors import (
    AlreadyInitializedError,
    BMADError,
    NotInitializedError,
    PreconditionError,
    StateError,
    StructureIncompleteError,
)
from .personas import format_persona_block, load_persona
from .rules import ORCHESTRATOR_RULES, mode_rules
from .state import (
    ActiveWorkflow,
    CompletedWorkflow,
    ProjectState,
    create_initial_state,
    project_lock,
    read_state,
    utc_now,
    write_state,
)
from .steps import (
    count_steps,
    find_first_step,
    find_step_by_number,
    find_successor,
    load_step,
    resolve_template,
    step_family,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolResult:
    """Text returned to the executing agent."""

    text: str
    is_error: bool = False

    def to_content(self) -> dict[str, Any]:
        return {"content": [{"type": "text", "text": self.text}]}


def tool_operation(func: Callable[..., ToolResult]) -> Callable[..., ToolResult]:
    """Convert orchestrator exceptions into error results."""

    @functools.wraps(func)
    def wrapper(self: "WorkflowLifecycle", *args: Any, **kwargs: Any) -> ToolResult:
        try:
            return func(self, *args, **kwargs)
        except AlreadyInitializedError as e:
            return ToolResult(str(e))
        except BMADError as e:
            logger.info("%s failed: %s", func.__name__, e)
            return ToolResult(f"Error: {e}", is_error=True)
        except Exception as e:
            logger.exception("Unexpected failure in %s", func.__name__)
            return ToolResult(f"Error: {func.__name__} failed unexpectedly: {e}", is_error=True)

    return wrapper


class WorkflowLifecycle:
    """Drives BMAD workflows for any number of projects.

    Args:
        catalogue: Workflow definitions and their prerequisites.
        settings: Content bundle location and template defaults.
    """

    def __init__(self, catalogue: WorkflowCatalogue, settings: BMADSettings) -> None:
        self.catalogue = catalogue
        self.settings = settings

    @property
    def method_path(self) -> Path:
        return self.settings.method_path

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    @tool_operation
    def init_project(self, project_path: str | Path, project_name: str) -> ToolResult:
        """Create ``_bmad/`` state and the output directories for a project."""
        path = Path(project_path)

        existing = read_state(path)
        if existing is not None:
            raise AlreadyInitializedError(
                f'Project "{existing.project_name}" is already initialized at {path}.\n'
                f"Current phase: {existing.current_phase.value}\n"
                f"Active workflow: {existing.active_workflow.id if existing.active_workflow else 'none'}\n"
                f"Completed workflows: {', '.join(existing.completed_ids) or 'none'}"
            )
        if not path.is_dir():
            raise PreconditionError(f"Project directory does not exist: {path}")
        if not project_name or not project_name.strip():
            raise PreconditionError("Project name must not be empty.")

        state = create_initial_state(path, project_name.strip())
        create_bmad_structure(
            path,
            self.method_path,
            config_values=self._variables(path, state.project_name),
            output_folder=self.settings.output_folder,
        )
        write_state(path, state)
        logger.info("Initialized BMAD project %r at %s", state.project_name, path)

        out = self.settings.output_folder
        return ToolResult(
            f'✅ BMad project "{state.project_name}" initialized.\n\n'
            "**Created:**\n"
            "- `_bmad/state.json` — project state tracking\n"
            "- `_bmad/config.yaml` — project variables for workflow steps\n"
            f"- `{out}/planning-artifacts/` — briefs, PRDs, architecture docs\n"
            f"- `{out}/implementation-artifacts/` — sprint status, stories, reviews\n\n"
            "**Next step:** Run `bmad_list_workflows` to see available workflows, "
            'or start with "Create Product Brief".'
        )

    @tool_operation
    def list_workflows(self, project_path: str | Path) -> ToolResult:
        """Workflows whose prerequisites are met, grouped by phase."""
        state = self._load_state(Path(project_path))

        active = state.active_workflow
        if active is not None:
            return ToolResult(
                f"⚠️ Workflow in progress: **{active.id}** (step {active.current_step})\n"
                f"Agent: {active.agent_name}\n"
                f"Mode: {active.mode.value}\n\n"
                "Complete the current workflow before starting a new one."
            )

        completed = state.completed_ids
        available = self.catalogue.get_available_workflows(completed)
        if not available:
            return ToolResult("🎉 All workflows completed! Nothing left to start.")

        lines = [
            f'## Available Workflows for "{state.project_name}"',
            f"**Current phase:** {state.current_phase.value}",
            f"**Completed:** {', '.join(completed) or 'none'}",
            "",
        ]
        for phase in PHASE_ORDER:
            in_phase = [w for w in available if w.phase == phase]
            if not in_phase:
                continue
            lines.append(f"### {phase.label}")
            for w in in_phase:
                done = " ✅" if w.id in completed else ""
                lines.append(f"- **{w.id}** — {w.description}{done}")
            lines.append("")

        lines.append("Use `bmad_start_workflow` with a workflow ID and mode (normal/yolo) to begin.")
        return ToolResult("\n".join(lines))

    @tool_operation
    def start_workflow(
        self, project_path: str | Path, workflow_id: str, mode: str = WorkflowMode.NORMAL.value
    ) -> ToolResult:
        """Activate a workflow and return the instructions for its first step."""
        path = Path(project_path)
        with project_lock(path):
            state = self._load_state(path)

            missing = missing_structure(path)
            if missing:
                raise StructureIncompleteError(
                    f"Project structure is incomplete — missing `{missing[0]}`. "
                    "Run `bmad_init_project` to properly initialize the project. "
                    "Do NOT create project directories manually."
                )

            if state.active_workflow is not None:
                raise PreconditionError(
                    f'Workflow "{state.active_workflow.id}" is already in progress '
                    f"(step {state.active_workflow.current_step}). "
                    "Complete it with `bmad_complete_workflow` first."
                )

            definition = self.catalogue.require_workflow(workflow_id)

            try:
                run_mode = WorkflowMode(mode)
            except ValueError:
                raise PreconditionError(f'Unknown mode "{mode}". Use "normal" or "yolo".') from None

            completed = set(state.completed_ids)
            unmet = [r for r in definition.requires if r not in completed]
            if unmet:
                raise PreconditionError(
                    f'Missing prerequisites for "{workflow_id}": {", ".join(unmet)}. '
                    "Complete those workflows first."
                )

            persona = load_persona(definition.agent_id, self.method_path)
            variables = self._variables(path, state.project_name)

            output_file = ""
            if definition.steps_dir:
                steps_dir = self.method_path / definition.steps_dir
                first_step_file = find_first_step(steps_dir)
                first_step = load_step(first_step_file)
                body = first_step.content
                total_steps: int | None = count_steps(steps_dir)
                first_number = first_step.step_number or 1
                if first_step.output_file:
                    output_file = resolve_template(first_step.output_file, variables)
            else:
                # No step directory: the workflow file is the whole instruction body
                first_step_file = self.method_path / definition.workflow_file
                body = self.catalogue.load_workflow_body(definition, self.method_path)
                total_steps = None
                first_number = 1

            state.active_workflow = ActiveWorkflow(
                id=definition.id,
                agent_id=definition.agent_id,
                agent_name=persona.name,
                mode=run_mode,
                current_step=first_number,
                total_steps=total_steps,
                current_step_file=str(first_step_file),
                output_file=output_file,
                started_at=utc_now(),
            )
            write_state(path, state)

        logger.info(
            "Started workflow %s (%s mode, %s steps) for %s",
            definition.id, run_mode.value, total_steps or "unknown", path,
        )
        return ToolResult(
            self._render_start(
                state, definition, persona_block=format_persona_block(persona),
                agent_name=persona.name, mode=run_mode, total_steps=total_steps,
                body=resolve_template(body, variables),
            )
        )

    @tool_operation
    def advance_step(self, project_path: str | Path, step: int | None = None) -> ToolResult:
        """Move the active workflow to its next step (or to *step*) and return it."""
        path = Path(project_path)
        with project_lock(path):
            state = self._load_state(path)
            active = self._require_active(state)
            variables = self._variables(path, state.project_name)

            definition = self.catalogue.get_workflow(active.id)
            if definition is not None and definition.steps_dir is None:
                return self._final_step_notice(active)

            current = load_step(active.current_step_file)
            if step is not None:
                next_path = self._jump_target(active, step)
            else:
                next_path = find_successor(current, self.method_path, variables)
            if next_path is None:
                return self._final_step_notice(active)

            next_step = load_step(next_path)
            is_final = find_successor(next_step, self.method_path, variables) is None

            # Files outside the step naming convention keep the previous number
            active.current_step = next_step.step_number or active.current_step
            active.step_visits += 1
            active.current_step_file = str(next_path)
            if next_step.output_file:
                active.output_file = resolve_template(next_step.output_file, variables)
            write_state(path, state)

        logger.info("Workflow %s advanced to step %s (%s)", active.id, active.step_label, next_path.name)

        footer = (
            "**This is the final step.** Call `bmad_save_artifact` to save output, "
            "then `bmad_complete_workflow` to finalize."
            if is_final
            else "**When complete:** Call `bmad_save_artifact` to save this step's output, "
            "then `bmad_load_step` for the next step."
        )
        return ToolResult(
            "\n".join([
                f"## Step {active.step_label}: {next_step.title}",
                "",
                resolve_template(next_step.content, variables),
                "",
                "---",
                "",
                footer,
            ])
        )

    @tool_operation
    def save_artifact(
        self, project_path: str | Path, content: str, output_file: str | None = None
    ) -> ToolResult:
        """Persist the current step's output."""
        path = Path(project_path)
        with project_lock(path):
            state = self._load_state(path)

            if not content or not content.strip():
                raise PreconditionError("Content is empty. Cannot save an empty artifact.")

            active = state.active_workflow
            destination = output_file or (active.output_file if active else "")
            if not destination:
                raise PreconditionError(
                    "No output file specified. Provide `outputFile` or ensure the "
                    "workflow step defines one."
                )

            if active is not None and active.already_saved:
                raise PreconditionError(
                    f"Step {active.current_step} was already saved. Call `bmad_load_step` "
                    "to advance to the next step before saving again."
                )

            artifact_path = resolve_output_path(path, destination)
            previous = load_artifact(artifact_path)
            save_mode = write_artifact(artifact_path, content)

            if active is not None:
                active.output_file = str(artifact_path)
                active.last_saved_step = active.current_step
                active.last_saved_visit = active.step_visits
                try:
                    write_state(path, state)
                except StateError:
                    restore_artifact(artifact_path, previous)
                    raise

        try:
            shown = artifact_path.relative_to(path)
        except ValueError:
            shown = artifact_path
        progress = f"Step {active.current_step} output persisted." if active else "Output persisted."
        return ToolResult(
            f"✅ Artifact saved: `{shown}` ({len(content)} characters, {save_mode.value})\n\n{progress}"
        )

    @tool_operation
    def complete_workflow(self, project_path: str | Path) -> ToolResult:
        """Close out the active workflow and recommend what to do next."""
        path = Path(project_path)
        with project_lock(path):
            state = self._load_state(path)
            active = self._require_active(state)

            state.completed_workflows.append(
                CompletedWorkflow(
                    id=active.id,
                    agent_id=active.agent_id,
                    output_file=active.output_file,
                    completed_at=utc_now(),
                )
            )
            state.active_workflow = None

            definition = self.catalogue.get_workflow(active.id)
            if definition is not None and definition.phase.rank > state.current_phase.rank:
                logger.info("Project %s advanced to phase %s", path, definition.phase.value)
                state.current_phase = definition.phase

            write_state(path, state)

        logger.info("Completed workflow %s for %s", active.id, path)

        completed = set(state.completed_ids)
        recommended = [
            w for w in self.catalogue.get_available_workflows(completed) if w.id not in completed
        ]

        lines = [
            f'✅ Workflow "{active.id}" completed!',
            "",
            f"**Agent:** {active.agent_name} ({active.agent_id})",
            f"**Output:** {active.output_file or 'none'}",
            f"**Started:** {active.started_at}",
            f"**Phase:** {state.current_phase.value}",
            "",
        ]
        if recommended:
            lines.append("## Recommended Next Steps")
            lines.append("")
            for w in recommended:
                lines.append(f"- **{w.id}** — {w.description}")
            lines.append("")
            lines.append("Use `bmad_start_workflow` to begin the next workflow.")
        else:
            lines.append("🎉 All available workflows are complete!")
        return ToolResult("\n".join(lines))

    @tool_operation
    def get_state(self, project_path: str | Path) -> ToolResult:
        """Human-readable summary of the project state."""
        state = self._load_state(Path(project_path))

        lines = [
            f"## BMad Project: {state.project_name}",
            "",
            f"**Phase:** {state.current_phase.value}",
            f"**Initialized:** {state.created_at}",
            "",
            "### Active Workflow",
        ]
        active = state.active_workflow
        if active is not None:
            lines.extend([
                f"- **Workflow:** {active.id}",
                f"- **Agent:** {active.agent_name} ({active.agent_id})",
                f"- **Mode:** {active.mode.value}",
                f"- **Step:** {active.step_label}",
                f"- **Output:** {active.output_file or 'not yet set'}",
                f"- **Started:** {active.started_at}",
            ])
        else:
            lines.append("None")
        lines.append("")

        lines.append("### Completed Workflows")
        if state.completed_workflows:
            for w in state.completed_workflows:
                lines.append(f"- **{w.id}** — {w.completed_at} → `{w.output_file or 'no output'}`")
        else:
            lines.append("None yet")

        return ToolResult("\n".join(lines))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _variables(self, project_path: Path, project_name: str) -> dict[str, str]:
        return template_variables(self.settings, project_path, project_name)

    def _load_state(self, project_path: Path) -> ProjectState:
        state = read_state(project_path)
        if state is None:
            raise NotInitializedError()
        return state

    def _require_active(self, state: ProjectState) -> ActiveWorkflow:
        if state.active_workflow is None:
            raise PreconditionError("No active workflow. Start one with `bmad_start_workflow`.")
        return state.active_workflow

    def _jump_target(self, active: ActiveWorkflow, step: int) -> Path:
        if step <= active.current_step:
            raise PreconditionError(
                f"Cannot load step {step}: workflow {active.id} is already at step "
                f"{active.current_step} and steps only move forward."
            )
        current_file = Path(active.current_step_file)
        steps_dir = current_file.parent
        target = find_step_by_number(steps_dir, step, family=step_family(current_file.name))
        if target is None:
            raise PreconditionError(f"Step {step} does not exist in {steps_dir}.")
        return target

    def _final_step_notice(self, active: ActiveWorkflow) -> ToolResult:
        return ToolResult(
            f'This is the final step of the "{active.id}" workflow.\n'
            "Call `bmad_complete_workflow` to finalize."
        )

    def _render_start(
        self,
        state: ProjectState,
        definition: WorkflowDefinition,
        *,
        persona_block: str,
        agent_name: str,
        mode: WorkflowMode,
        total_steps: int | None,
        body: str,
    ) -> str:
        project = state.project_path
        return "\n".join([
            f"# BMad Workflow Agent: {agent_name}",
            "",
            "You are a dedicated workflow agent. Complete this workflow and stop.",
            "",
            persona_block,
            "",
            "---",
            "",
            ORCHESTRATOR_RULES,
            mode_rules(mode),
            "---",
            "",
            "## Workflow Context",
            "",
            f"**Project:** {state.project_name} at `{project}`",
            f"**Workflow:** {definition.name} ({definition.id})",
            f"**Mode:** {mode.value}",
            f"**Steps:** {total_steps if total_steps is not None else 'unknown'}",
            "",
            "---",
            "",
            "## Step 1 — Execute Now",
            "",
            body,
            "",
            "---",
            "",
            f'**After each step:** Call `bmad_save_artifact` with projectPath="{project}" '
            f'to save output, then `bmad_load_step` with projectPath="{project}" for the next step.',
            f'**Final step:** Call `bmad_save_artifact`, then `bmad_complete_workflow` '
            f'with projectPath="{project}".',
            "**Do NOT start additional workflows.** Complete this one and stop.",
        ])
