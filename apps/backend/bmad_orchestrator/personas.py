"""
BMAD Persona Loader
====================

Load BMAD agent YAML definitions from the content bundle and format them
into the persona block that opens every workflow's instructions.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

import yaml

from .config import AGENT_FILES
from .errors import ContentError, UnknownIdentifierError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentPersona:
    """Identity and communication style of one BMAD agent."""

    id: str
    name: str
    title: str = ""
    icon: str = ""
    role: str = ""
    identity: str = ""
    communication_style: str = ""
    principles: str | tuple[str, ...] = ""
    critical_actions: tuple[str, ...] = ()


def load_persona(agent_id: str, method_path: Path) -> AgentPersona:
    """Load a BMAD agent persona from the content bundle.

    Args:
        agent_id: Agent id from the catalogue (e.g. "pm", "analyst").
        method_path: Root of the BMad method content bundle.

    Returns:
        Parsed persona. Missing metadata/persona fields default to empty
        strings, and the display name falls back to the agent id.

    Raises:
        UnknownIdentifierError: If the agent id has no registered file.
        ContentError: If the file is missing, is not valid YAML, or has no
            top-level ``agent`` key.
    """
    relative = AGENT_FILES.get(agent_id)
    if relative is None:
        raise UnknownIdentifierError(f"Unknown agent ID: {agent_id}")

    agent_file = method_path / relative
    try:
        data = yaml.safe_load(agent_file.read_text(encoding="utf-8"))
    except OSError as e:
        raise ContentError(f"BMAD agent file not readable: {agent_file} ({e})") from e
    except yaml.YAMLError as e:
        raise ContentError(f"BMAD agent file is not valid YAML: {agent_file} ({e})") from e

    agent = data.get("agent") if isinstance(data, dict) else None
    if not isinstance(agent, dict):
        raise ContentError(f"Invalid agent file (no 'agent' root key): {agent_file}")

    metadata = agent.get("metadata") or {}
    persona = agent.get("persona") or {}

    principles = persona.get("principles") or ""
    if isinstance(principles, list):
        principles = tuple(str(p) for p in principles)
    else:
        principles = str(principles)

    critical_actions = agent.get("critical_actions") or ()
    if not isinstance(critical_actions, list):
        critical_actions = ()

    return AgentPersona(
        id=agent_id,
        name=str(metadata.get("name") or agent_id),
        title=str(metadata.get("title") or ""),
        icon=str(metadata.get("icon") or ""),
        role=str(persona.get("role") or ""),
        identity=_clean_multiline(persona.get("identity") or ""),
        communication_style=_clean_multiline(persona.get("communication_style") or ""),
        principles=principles,
        critical_actions=tuple(str(a) for a in critical_actions),
    )


def format_persona_block(persona: AgentPersona) -> str:
    """Format a persona into the "Your Role" block of a workflow prompt."""
    heading = f"## Your Role: {persona.icon + ' ' if persona.icon else ''}{persona.name}"
    if persona.title:
        heading += f" - {persona.title}"

    lines = [heading, ""]

    if persona.role:
        lines.append(f"**Role:** {persona.role}")
    lines.append(f"**Identity:** {persona.identity}")
    lines.append(f"**Communication Style:** {persona.communication_style}")

    if persona.principles:
        lines.append("")
        lines.append("**Principles:**")
        if isinstance(persona.principles, tuple):
            for p in persona.principles:
                lines.append(f"- {p}")
        else:
            lines.append(persona.principles.rstrip())

    if persona.critical_actions:
        lines.append("")
        lines.append("**Critical Actions:**")
        for action in persona.critical_actions:
            lines.append(f"- {action}")

    return "\n".join(lines)


def _clean_multiline(text: object) -> str:
    """Collapse YAML multi-line strings into a single line."""
    if not isinstance(text, str):
        return str(text)
    return " ".join(line.strip() for line in text.strip().splitlines() if line.strip())
