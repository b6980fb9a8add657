"""
BMAD Agent Tools
================

The seven named tools a host agent runtime registers to drive BMAD
workflows. Each tool carries a JSON schema for its parameters and maps the
host's camelCase arguments onto a WorkflowLifecycle method.
"""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .catalogue import default_catalogue, load_catalogue
from .config import WORKFLOW_CATALOGUE_KEY, WorkflowMode, load_settings
from .lifecycle import ToolResult, WorkflowLifecycle

logger = logging.getLogger(__name__)

_PROJECT_PATH = {
    "type": "string",
    "description": "Absolute path to the project root directory",
}


def _schema(properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
    return {"type": "object", "properties": properties, "required": required}


@dataclass(frozen=True)
class BMADTool:
    """One registered tool: name, description, parameter schema and handler."""

    name: str
    description: str
    handler: Callable[[dict[str, Any]], ToolResult]
    parameters: dict[str, Any] = field(default_factory=lambda: _schema({}, []))

    @property
    def required(self) -> list[str]:
        return list(self.parameters.get("required", []))

    def execute(self, params: Mapping[str, Any] | None = None) -> ToolResult:
        """Validate required parameters and dispatch to the controller."""
        args = dict(params or {})
        missing = [name for name in self.required if args.get(name) is None]
        if missing:
            return ToolResult(
                f"Error: {self.name} is missing required parameter(s): {', '.join(missing)}",
                is_error=True,
            )
        return self.handler(args)


def _step_argument(value: Any) -> int | None:
    # JSON numbers may arrive as floats
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value != int(value):
        raise ValueError(f"step must be a whole number, got {value!r}")
    return int(value)


def build_tools(controller: WorkflowLifecycle) -> list[BMADTool]:
    """Tool entries for every lifecycle operation, in registration order."""

    def load_step(args: dict[str, Any]) -> ToolResult:
        try:
            step = _step_argument(args.get("step"))
        except ValueError as e:
            return ToolResult(f"Error: {e}", is_error=True)
        return controller.advance_step(args["projectPath"], step=step)

    return [
        BMADTool(
            name="bmad_init_project",
            description=(
                "Initialize a new BMad Method project. Creates _bmad/ directory and "
                "state tracking. Run once per project."
            ),
            parameters=_schema(
                {
                    "projectPath": _PROJECT_PATH,
                    "projectName": {"type": "string", "description": "Human-readable project name"},
                },
                ["projectPath", "projectName"],
            ),
            handler=lambda args: controller.init_project(args["projectPath"], args["projectName"]),
        ),
        BMADTool(
            name="bmad_list_workflows",
            description=(
                "List BMad workflows available for the current project state. Only shows "
                "workflows whose prerequisites are completed."
            ),
            parameters=_schema({"projectPath": _PROJECT_PATH}, ["projectPath"]),
            handler=lambda args: controller.list_workflows(args["projectPath"]),
        ),
        BMADTool(
            name="bmad_start_workflow",
            description=(
                "Start a BMad workflow. Returns the task prompt for the workflow agent "
                "and records the active workflow in the project state."
            ),
            parameters=_schema(
                {
                    "projectPath": _PROJECT_PATH,
                    "workflow": {
                        "type": "string",
                        "description": 'Workflow ID (e.g. "create-product-brief", "create-prd")',
                    },
                    "mode": {
                        "type": "string",
                        "enum": [m.value for m in WorkflowMode],
                        "description": "Execution mode: normal (interactive) or yolo (autonomous)",
                    },
                },
                ["projectPath", "workflow", "mode"],
            ),
            handler=lambda args: controller.start_workflow(
                args["projectPath"], args["workflow"], args["mode"]
            ),
        ),
        BMADTool(
            name="bmad_load_step",
            description=(
                "Load the next step in the active BMad workflow. Call this after "
                "completing the current step."
            ),
            parameters=_schema(
                {
                    "projectPath": _PROJECT_PATH,
                    "step": {
                        "type": "number",
                        "description": "Specific step number to load (optional, defaults to next step)",
                    },
                },
                ["projectPath"],
            ),
            handler=load_step,
        ),
        BMADTool(
            name="bmad_save_artifact",
            description=(
                "Save workflow artifact output to disk. Appends content to the output "
                "file (each step adds its section incrementally)."
            ),
            parameters=_schema(
                {
                    "projectPath": _PROJECT_PATH,
                    "content": {
                        "type": "string",
                        "description": "Markdown content for the current step's output section",
                    },
                    "outputFile": {
                        "type": "string",
                        "description": (
                            "Output file path (absolute or relative to project root). "
                            "Defaults to the workflow's configured output file."
                        ),
                    },
                },
                ["projectPath", "content"],
            ),
            handler=lambda args: controller.save_artifact(
                args["projectPath"], args["content"], output_file=args.get("outputFile")
            ),
        ),
        BMADTool(
            name="bmad_complete_workflow",
            description=(
                "Mark the active BMad workflow as complete. Updates project state and "
                "suggests next workflows."
            ),
            parameters=_schema({"projectPath": _PROJECT_PATH}, ["projectPath"]),
            handler=lambda args: controller.complete_workflow(args["projectPath"]),
        ),
        BMADTool(
            name="bmad_get_state",
            description=(
                "Get the current BMad project state: active workflow, completed "
                "artifacts, phase and step progress."
            ),
            parameters=_schema({"projectPath": _PROJECT_PATH}, ["projectPath"]),
            handler=lambda args: controller.get_state(args["projectPath"]),
        ),
    ]


def create_tools(plugin_config: Mapping[str, object] | None = None) -> list[BMADTool]:
    """Build a controller from host plugin config and return its tools.

    ``workflowCatalogue`` may name a YAML file that replaces the built-in
    catalogue; see load_catalogue() for its format.

    Raises:
        CatalogueError: If a configured catalogue cannot be loaded.
    """
    config = plugin_config or {}
    settings = load_settings(config)

    catalogue_file = config.get(WORKFLOW_CATALOGUE_KEY)
    if isinstance(catalogue_file, str) and catalogue_file:
        catalogue = load_catalogue(Path(catalogue_file).expanduser())
    else:
        catalogue = default_catalogue()

    tools = build_tools(WorkflowLifecycle(catalogue, settings))
    logger.info("BMad Method path: %s", settings.method_path)
    logger.info("Registered %d BMad tools (%s)", len(tools), ", ".join(t.name for t in tools))
    return tools
