"""
BMAD Artifact Management
========================

Create the BMAD project layout and persist workflow artifacts (briefs, PRDs,
architecture docs, stories) that the executing agent submits step by step.
"""

import logging
from collections.abc import Mapping
from enum import Enum
from pathlib import Path

import yaml

from .config import (
    BMAD_MODULE_DIRS,
    IMPLEMENTATION_ARTIFACTS_SUBDIR,
    OUTPUT_FOLDER,
    PLANNING_ARTIFACTS_SUBDIR,
    PROJECT_CONFIG_NAME,
)
from .state import bmad_dir

logger = logging.getLogger(__name__)


class SaveMode(str, Enum):
    """How save_artifact combined new content with the file on disk."""

    CREATED = "created"
    APPENDED = "appended"
    REPLACED = "replaced"


def create_bmad_structure(
    project_path: Path,
    method_path: Path,
    config_values: Mapping[str, str],
    output_folder: str = OUTPUT_FOLDER,
) -> list[Path]:
    """Create the BMAD directory structure inside a project.

    Layout created::

        project/
        ├── _bmad/
        │   ├── config.yaml    # project variables for step files
        │   ├── core/          # -> <bundle>/core
        │   └── bmm/           # -> <bundle>/bmm
        └── _bmad-output/
            ├── planning-artifacts/         # briefs, PRDs, architecture
            └── implementation-artifacts/   # sprint status, stories, reviews

    ``core`` and ``bmm`` are symlinked to the content bundle so step files
    that reference ``{project-root}/_bmad/...`` resolve. When the bundle
    lacks the directory, or the platform refuses symlinks, a plain
    directory is created instead.

    Returns:
        The created output directories.
    """
    root = bmad_dir(project_path)
    root.mkdir(parents=True, exist_ok=True)

    for module in BMAD_MODULE_DIRS:
        link = root / module
        if link.exists() or link.is_symlink():
            continue
        target = method_path / module
        if target.is_dir():
            try:
                link.symlink_to(target.resolve(), target_is_directory=True)
                continue
            except OSError as e:
                logger.warning("Could not link %s -> %s (%s); creating directory", link, target, e)
        else:
            logger.warning("BMAD bundle directory not found: %s", target)
        link.mkdir(parents=True, exist_ok=True)

    config_file = root / PROJECT_CONFIG_NAME
    config_file.write_text(
        yaml.safe_dump(dict(config_values), sort_keys=False, allow_unicode=True),
        encoding="utf-8",
    )

    output_root = project_path / output_folder
    created = []
    for subdir in (PLANNING_ARTIFACTS_SUBDIR, IMPLEMENTATION_ARTIFACTS_SUBDIR):
        path = output_root / subdir
        path.mkdir(parents=True, exist_ok=True)
        created.append(path)

    logger.info("Created BMAD project structure at %s", root)
    return created


def missing_structure(project_path: Path) -> list[Path]:
    """Required ``_bmad/`` entries that are absent, relative to the project."""
    root = bmad_dir(project_path)
    required = [root / PROJECT_CONFIG_NAME] + [root / m for m in BMAD_MODULE_DIRS]
    return [p.relative_to(project_path) for p in required if not p.exists()]


def resolve_output_path(project_path: Path, output_file: str) -> Path:
    """Absolute artifact path; relative paths are taken from the project root."""
    path = Path(output_file)
    return path if path.is_absolute() else project_path / path


def save_artifact(artifact_path: Path, content: str) -> SaveMode:
    """Write a step's output into an artifact file.

    Multi-step workflows build their document section by section, so new
    content is appended after a blank line. When the new content already
    contains everything on disk (the agent resent the whole document rather
    than the latest section) it replaces the file instead.

    Returns:
        How the content was written.
    """
    artifact_path.parent.mkdir(parents=True, exist_ok=True)

    existing = load_artifact(artifact_path) or ""
    if not existing:
        artifact_path.write_text(content, encoding="utf-8")
        mode = SaveMode.CREATED
    elif existing.strip() in content:
        artifact_path.write_text(content, encoding="utf-8")
        mode = SaveMode.REPLACED
    else:
        artifact_path.write_text(existing + "\n\n" + content, encoding="utf-8")
        mode = SaveMode.APPENDED

    logger.info("Saved BMAD artifact (%s): %s", mode.value, artifact_path)
    return mode


def restore_artifact(artifact_path: Path, previous: str | None) -> None:
    """Put an artifact back to what load_artifact() returned before a save."""
    if previous is None:
        artifact_path.unlink(missing_ok=True)
    else:
        artifact_path.write_text(previous, encoding="utf-8")
    logger.warning("Rolled back BMAD artifact: %s", artifact_path)


def load_artifact(artifact_path: Path) -> str | None:
    """Artifact content, or None if it has not been written yet."""
    if artifact_path.is_file():
        return artifact_path.read_text(encoding="utf-8")
    return None
