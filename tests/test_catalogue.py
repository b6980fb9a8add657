"""Tests for the workflow catalogue: lookups, availability and validation."""

from pathlib import Path

import pytest
import yaml

from bmad_orchestrator.catalogue import (
    DEFAULT_WORKFLOWS,
    WorkflowCatalogue,
    WorkflowDefinition,
    default_catalogue,
    load_catalogue,
)
from bmad_orchestrator.config import AGENT_FILES, Phase
from bmad_orchestrator.errors import CatalogueError, ContentError, UnknownIdentifierError


def _definition(workflow_id: str, *requires: str) -> WorkflowDefinition:
    return WorkflowDefinition(
        workflow_id, workflow_id.title(), f"{workflow_id} workflow",
        Phase.ANALYSIS, "analyst", f"bmm/workflows/{workflow_id}/workflow.md",
        requires=requires,
    )


class TestDefaultCatalogue:
    """The built-in BMad Method catalogue."""

    def test_ids_are_unique(self) -> None:
        """Every workflow id appears exactly once."""
        ids = [w.id for w in DEFAULT_WORKFLOWS]
        assert len(ids) == len(set(ids))
        assert len(default_catalogue()) == len(ids)

    def test_every_agent_has_a_persona_file(self) -> None:
        """Catalogue agent ids are all known to the persona loader."""
        for workflow in DEFAULT_WORKFLOWS:
            assert workflow.agent_id in AGENT_FILES, workflow.id

    def test_fresh_project_availability(self) -> None:
        """With nothing completed only prerequisite-free workflows are available."""
        available = {w.id for w in default_catalogue().get_available_workflows([])}
        assert "create-product-brief" in available
        assert "brainstorming" in available
        assert "quick-spec" in available
        assert "create-prd" not in available
        assert "quick-dev" not in available

    def test_completion_unlocks_dependents(self) -> None:
        """Completing the product brief makes create-prd available."""
        available = {
            w.id for w in default_catalogue().get_available_workflows(["create-product-brief"])
        }
        assert "create-prd" in available
        assert "create-architecture" not in available

    def test_availability_is_monotonic(self) -> None:
        """Adding completed ids never removes an available workflow."""
        catalogue = default_catalogue()
        smaller = {w.id for w in catalogue.get_available_workflows(["create-product-brief"])}
        larger = {
            w.id
            for w in catalogue.get_available_workflows(
                ["create-product-brief", "create-prd", "create-architecture"]
            )
        }
        assert smaller <= larger
        assert "create-epics-and-stories" in larger

    def test_available_preserves_declaration_order(self) -> None:
        """Queries keep catalogue order."""
        catalogue = default_catalogue()
        available = catalogue.get_available_workflows([])
        order = [w.id for w in catalogue]
        assert [w.id for w in available] == sorted(
            (w.id for w in available), key=order.index
        )

    def test_workflows_by_phase(self) -> None:
        """Phase filter accepts the enum or its string value."""
        catalogue = default_catalogue()
        planning = catalogue.get_workflows_by_phase("planning")
        assert [w.id for w in planning] == [
            "create-prd", "validate-prd", "edit-prd", "create-ux-design",
        ]
        assert catalogue.get_workflows_by_phase(Phase.PLANNING) == planning

    def test_lookup(self) -> None:
        """get_workflow returns None for unknown ids; require_workflow raises."""
        catalogue = default_catalogue()
        assert catalogue.get_workflow("create-prd").agent_id == "pm"
        assert catalogue.get_workflow("nope") is None
        assert "create-prd" in catalogue
        with pytest.raises(UnknownIdentifierError, match="bmad_list_workflows"):
            catalogue.require_workflow("nope")


class TestCatalogueValidation:
    """Construction rejects inconsistent catalogues."""

    def test_duplicate_ids_rejected(self) -> None:
        with pytest.raises(CatalogueError, match="Duplicate workflow id: a"):
            WorkflowCatalogue([_definition("a"), _definition("a")])

    def test_unknown_prerequisite_rejected(self) -> None:
        with pytest.raises(CatalogueError, match="unknown workflows: ghost"):
            WorkflowCatalogue([_definition("a", "ghost")])

    def test_cycle_rejected(self) -> None:
        """A requires-cycle is reported with its path."""
        with pytest.raises(CatalogueError, match="Prerequisite cycle: a -> b -> a"):
            WorkflowCatalogue([_definition("a", "b"), _definition("b", "a")])

    def test_self_cycle_rejected(self) -> None:
        with pytest.raises(CatalogueError, match="cycle"):
            WorkflowCatalogue([_definition("a", "a")])

    def test_diamond_is_not_a_cycle(self) -> None:
        """Shared prerequisites are fine."""
        catalogue = WorkflowCatalogue([
            _definition("base"),
            _definition("left", "base"),
            _definition("right", "base"),
            _definition("top", "left", "right"),
        ])
        assert len(catalogue) == 4


class TestLoadCatalogue:
    """Loading a catalogue from YAML."""

    def test_load_camel_case_entries(self, tmp_path: Path) -> None:
        path = tmp_path / "catalogue.yaml"
        path.write_text(
            yaml.safe_dump({
                "workflows": [
                    {
                        "id": "brief",
                        "name": "Brief",
                        "phase": "analysis",
                        "agentId": "analyst",
                        "workflowFile": "bmm/workflows/brief/workflow.md",
                        "stepsDir": "bmm/workflows/brief/steps",
                    },
                    {
                        "id": "prd",
                        "phase": "planning",
                        "agent_id": "pm",
                        "workflow_file": "bmm/workflows/prd/workflow.md",
                        "requires": "brief",
                    },
                ]
            }),
            encoding="utf-8",
        )

        catalogue = load_catalogue(path)

        brief = catalogue.require_workflow("brief")
        assert brief.steps_dir == "bmm/workflows/brief/steps"
        prd = catalogue.require_workflow("prd")
        assert prd.name == "prd"
        assert prd.phase is Phase.PLANNING
        assert prd.steps_dir is None
        assert prd.requires == ("brief",)

    def test_missing_required_key(self, tmp_path: Path) -> None:
        path = tmp_path / "catalogue.yaml"
        path.write_text("workflows:\n  - id: brief\n    phase: analysis\n", encoding="utf-8")
        with pytest.raises(CatalogueError, match="Invalid workflow definition"):
            load_catalogue(path)

    def test_unknown_phase(self, tmp_path: Path) -> None:
        path = tmp_path / "catalogue.yaml"
        path.write_text(
            "workflows:\n"
            "  - {id: x, phase: shipping, agentId: pm, workflowFile: w.md}\n",
            encoding="utf-8",
        )
        with pytest.raises(CatalogueError):
            load_catalogue(path)

    def test_missing_workflows_list(self, tmp_path: Path) -> None:
        path = tmp_path / "catalogue.yaml"
        path.write_text("name: nothing here\n", encoding="utf-8")
        with pytest.raises(CatalogueError, match="no 'workflows' list"):
            load_catalogue(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(CatalogueError, match="Cannot read"):
            load_catalogue(tmp_path / "absent.yaml")


class TestLoadWorkflowBody:
    """Reading a workflow definition file from the bundle."""

    def test_reads_file(self, method_path: Path) -> None:
        catalogue = default_catalogue()
        body = catalogue.load_workflow_body(
            catalogue.require_workflow("create-product-brief"), method_path
        )
        assert body.startswith("# Create Product Brief")

    def test_missing_file_is_content_error(self, method_path: Path) -> None:
        catalogue = default_catalogue()
        with pytest.raises(ContentError, match="Workflow file not readable"):
            catalogue.load_workflow_body(catalogue.require_workflow("sprint-planning"), method_path)
