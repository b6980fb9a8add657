"""Shared fixtures: a miniature BMad content bundle and an orchestrator around it.

The bundle mirrors the layout of the real method files for the handful of
workflows the tests drive, so no bundled content is needed:

    bundle/
    ├── core/workflows/brainstorming/workflow.md
    └── bmm/
        ├── agents/{analyst,pm,sm}.agent.yaml
        └── workflows/
            ├── 1-analysis/create-product-brief/   (3 primary steps + 01b)
            ├── 2-plan-workflows/create-prd/        (2 steps)
            └── solo/workflow.yaml                  (no step directory)
"""

from pathlib import Path

import pytest

from bmad_orchestrator.catalogue import WorkflowCatalogue, WorkflowDefinition, default_catalogue
from bmad_orchestrator.config import BMADSettings, Phase
from bmad_orchestrator.lifecycle import WorkflowLifecycle

BRIEF_STEPS = "bmm/workflows/1-analysis/create-product-brief/steps"
PRD_STEPS = "bmm/workflows/2-plan-workflows/create-prd/steps-c"

ANALYST_YAML = """\
agent:
  metadata:
    name: Mary
    title: Business Analyst
    icon: "📊"
  persona:
    role: Strategic Business Analyst
    identity: |
      Senior analyst with deep expertise
      in market research.
    communication_style: Energetic and curious
    principles:
      - Ground findings in evidence
      - Articulate requirements precisely
  critical_actions:
    - Load project context first
"""

PM_YAML = """\
agent:
  metadata:
    name: John
    title: Product Manager
  persona:
    role: Investigative Product Strategist
    identity: Product management veteran.
    communication_style: Asks WHY relentlessly
    principles: |
      Ship the smallest thing that validates the assumption.
"""

SM_YAML = """\
agent:
  metadata:
    name: Bob
"""

BRIEF_STEP_01 = """\
---
name: 'step-01-init'
description: 'Initialize the product brief'
nextStepFile: './step-02-vision.md'
outputFile: '{planning_artifacts}/product-brief-{{project_name}}.md'
---

# Step 1: Initialize

Welcome {user_name}. We are briefing {{project_name}}.

[C] Continue
"""

BRIEF_STEP_01B = """\
---
name: 'step-01b-continue'
description: 'Resume an existing brief'
---

# Step 1b: Continue

Pick up where the last session stopped.
"""

BRIEF_STEP_02 = """\
---
name: 'step-02-vision'
description: 'Capture the product vision'
---

# Step 2: Vision

Write the vision for {{project_name}}.
"""

BRIEF_STEP_03 = """\
---
description: 'Wrap up the brief'
---

# Step 3: Complete

Summarise the brief.
"""

PRD_STEP_01 = """\
---
name: 'step-01-init'
nextStepFile: './step-02-discovery.md'
outputFile: '{planning_artifacts}/prd.md'
---

# PRD Step 1
"""

PRD_STEP_02 = """\
---
name: 'step-02-discovery'
---

# PRD Step 2
"""


def write_file(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def method_path(tmp_path: Path) -> Path:
    """A miniature content bundle."""
    root = tmp_path / "bundle"

    write_file(root / "bmm/agents/analyst.agent.yaml", ANALYST_YAML)
    write_file(root / "bmm/agents/pm.agent.yaml", PM_YAML)
    write_file(root / "bmm/agents/sm.agent.yaml", SM_YAML)

    write_file(
        root / "bmm/workflows/1-analysis/create-product-brief/workflow.md",
        "# Create Product Brief\n",
    )
    write_file(root / BRIEF_STEPS / "step-01-init.md", BRIEF_STEP_01)
    write_file(root / BRIEF_STEPS / "step-01b-continue.md", BRIEF_STEP_01B)
    write_file(root / BRIEF_STEPS / "step-02-vision.md", BRIEF_STEP_02)
    write_file(root / BRIEF_STEPS / "step-03-complete.md", BRIEF_STEP_03)

    write_file(
        root / "bmm/workflows/2-plan-workflows/create-prd/workflow-create-prd.md",
        "# Create PRD\n",
    )
    write_file(root / PRD_STEPS / "step-01-init.md", PRD_STEP_01)
    write_file(root / PRD_STEPS / "step-02-discovery.md", PRD_STEP_02)

    write_file(
        root / "bmm/workflows/solo/workflow.yaml",
        "name: solo\ninstructions: Plan the sprint for {project_name}.\n",
    )
    write_file(root / "core/workflows/brainstorming/workflow.md", "# Brainstorming\n")
    return root


@pytest.fixture
def settings(method_path: Path) -> BMADSettings:
    return BMADSettings(method_path=method_path)


@pytest.fixture
def lifecycle(settings: BMADSettings) -> WorkflowLifecycle:
    """Controller over the built-in catalogue and the miniature bundle."""
    return WorkflowLifecycle(default_catalogue(), settings)


@pytest.fixture
def solo_lifecycle(settings: BMADSettings) -> WorkflowLifecycle:
    """Controller whose only workflow has no step directory."""
    catalogue = WorkflowCatalogue([
        WorkflowDefinition(
            "solo", "Solo Planning", "Single-file workflow",
            Phase.IMPLEMENTATION, "sm", "bmm/workflows/solo/workflow.yaml",
        ),
    ])
    return WorkflowLifecycle(catalogue, settings)


@pytest.fixture
def project_path(tmp_path: Path) -> Path:
    """An empty project directory."""
    path = tmp_path / "demo"
    path.mkdir()
    return path


@pytest.fixture
def initialized_project(lifecycle: WorkflowLifecycle, project_path: Path) -> Path:
    """A project initialized as "Demo"."""
    result = lifecycle.init_project(project_path, "Demo")
    assert not result.is_error, result.text
    return project_path
