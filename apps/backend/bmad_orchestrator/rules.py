"""
BMAD Execution Rules
====================

Rule blocks placed in front of a workflow's first step. They tell the
executing agent how the step-file protocol works and how to behave in each
execution mode.
"""

from .config import WorkflowMode

ORCHESTRATOR_RULES = """\
## BMad Workflow Execution Rules

You are executing a BMad workflow. Follow these rules exactly.

### Core Mandates
- Read COMPLETE step content; never skim or truncate it
- Execute every instruction in the step, in order
- Never skip a step

### Step-File Protocol
- **Just-in-time loading:** only the current step is in context. Never read future step files.
- **Sequential:** steps are completed in order.
- **Persist output:** call `bmad_save_artifact` once per step that produces output.
- **Advance:** call `bmad_load_step` to receive the next step; do not open step files directly.

### Never
- 🛑 process more than one step at a time
- 🚫 skip or reorder steps
- 📋 plan ahead from steps you have not been given
"""

NORMAL_MODE_RULES = """\
### Normal Mode Active
- Full user interaction and confirmation at EVERY step
- When a step presents a menu with [A]/[C]/[P]/[Y] options, HALT and present the menu to the user
- Wait for user input before proceeding to the next step
- Checkpoint options:
  - [A] Advanced Elicitation - deep-dive into the current section
  - [C] Continue - proceed to the next step
  - [P] Party Mode - multi-agent discussion
  - [Y] YOLO - finish the rest without further prompts
"""

YOLO_MODE_RULES = """\
### YOLO Mode Active
- Skip confirmations and elicitation
- Produce the workflow output by simulating expert user responses
- When a step presents a menu with [A]/[C]/[P]/[Y] options, automatically select [C] Continue
- Do NOT halt at checkpoints
- After saving a step's output, immediately call `bmad_load_step` for the next step
"""

INTERACTIVE_STEP_RULES = """\
## Interactive Mode Rules
After completing each step:
1. Call `bmad_save_artifact` to save your output
2. Present a summary of what you produced
3. Say: "Step N complete. Awaiting your feedback before proceeding to step N+1."
4. STOP and wait for user input
5. When feedback arrives, incorporate it and continue with `bmad_load_step`
"""


def mode_rules(mode: WorkflowMode) -> str:
    """Rule text for *mode*; normal mode also gets the per-step halt protocol."""
    if mode is WorkflowMode.YOLO:
        return YOLO_MODE_RULES
    return NORMAL_MODE_RULES + "\n" + INTERACTIVE_STEP_RULES
