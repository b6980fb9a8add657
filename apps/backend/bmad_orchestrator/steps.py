"""
BMAD Step Sequencer
===================

Load and parse BMad step files (YAML frontmatter + markdown body), order
them, count them, and work out which step comes next.

Step files are read just in time: nothing here caches a step between calls,
so only the step currently being executed is ever held in context.
"""

import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .config import METHOD_ROOT_PREFIXES
from .errors import ContentError

logger = logging.getLogger(__name__)

# step-01-init.md, step-01b-continue.md, step-v-01-discovery.md, step-e-02b-edit.md
#   group 1: optional family tag, group 2: step number, group 3: continuation letter
_STEP_FILE_RE = re.compile(r"^step-(?:([a-z]{1,4})-)?(\d+)([a-z]?)(?=[-.])")
_STEP_SUFFIX = ".md"


@dataclass(frozen=True)
class StepMetadata:
    """Typed view of a step file's frontmatter.

    Known keys are validated and exposed as attributes; everything else is
    kept untouched in ``extra``.
    """

    name: str = ""
    description: str = ""
    next_step_file: str | None = None
    output_file: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    _KNOWN_KEYS = {
        "name": "name",
        "description": "description",
        "nextStepFile": "next_step_file",
        "outputFile": "output_file",
    }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], source: Path | None = None) -> "StepMetadata":
        """Validate a parsed frontmatter mapping.

        Missing fields default to empty. Text fields must be scalars and
        path fields must be strings; anything else is a ContentError.
        """
        known: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in data.items():
            attr = cls._KNOWN_KEYS.get(key)
            if attr is None:
                extra[str(key)] = value
                continue
            if value is None:
                continue
            if attr in ("next_step_file", "output_file"):
                if not isinstance(value, str):
                    raise ContentError(f"Frontmatter field '{key}' must be a path string in {source}")
                if value.strip():
                    known[attr] = value.strip()
            else:
                if isinstance(value, (dict, list)):
                    raise ContentError(f"Frontmatter field '{key}' must be text in {source}")
                known[attr] = str(value)
        return cls(extra=extra, **known)


@dataclass(frozen=True)
class StepUnit:
    """A single parsed step file."""

    step_number: int
    file_path: Path
    metadata: StepMetadata
    content: str
    raw_metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def description(self) -> str:
        return self.metadata.description

    @property
    def next_step_file(self) -> str | None:
        return self.metadata.next_step_file

    @property
    def output_file(self) -> str | None:
        return self.metadata.output_file

    @property
    def title(self) -> str:
        return self.name or self.description or self.file_path.stem


def split_frontmatter(raw: str, source: Path | None = None) -> tuple[dict[str, Any], str]:
    """Split a leading ``---`` delimited YAML block from the body.

    Returns ``({}, raw)`` when there is no frontmatter.

    Raises:
        ContentError: If the block is not valid YAML or not a mapping.
    """
    text = raw.lstrip("\ufeff")
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].strip() != "---":
        return {}, text

    for idx in range(1, len(lines)):
        if lines[idx].strip() == "---":
            header = "".join(lines[1:idx])
            body = "".join(lines[idx + 1:])
            break
    else:
        # Unterminated block: treat the whole file as body
        return {}, text

    try:
        data = yaml.safe_load(header)
    except yaml.YAMLError as e:
        raise ContentError(f"Malformed frontmatter in {source}: {e}") from e

    if data is None:
        return {}, body
    if not isinstance(data, dict):
        raise ContentError(f"Frontmatter in {source} is not a key/value mapping")
    return data, body


def parse_step_number(filename: str) -> int:
    """Step number from a step filename ("step-12-complete.md" -> 12).

    Returns 0 for names that do not follow the step naming convention.
    """
    match = _STEP_FILE_RE.match(filename)
    return int(match.group(2)) if match else 0


def step_family(filename: str) -> str:
    """Family tag of a step file ("step-e-02-edit.md" -> "e"), empty for plain steps."""
    match = _STEP_FILE_RE.match(filename)
    return (match.group(1) or "") if match else ""


def is_step_file(filename: str) -> bool:
    return filename.endswith(_STEP_SUFFIX) and _STEP_FILE_RE.match(filename) is not None


def is_primary_step(filename: str) -> bool:
    """True unless the step number carries a continuation letter (step-01b)."""
    match = _STEP_FILE_RE.match(filename)
    return match is not None and not match.group(3)


def load_step(path: Path | str) -> StepUnit:
    """Load and parse a step file.

    Raises:
        ContentError: If the file cannot be read or its frontmatter is malformed.
    """
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ContentError(f"Step file not readable: {path} ({e})") from e

    data, body = split_frontmatter(raw, source=path)
    return StepUnit(
        step_number=parse_step_number(path.name),
        file_path=path,
        metadata=StepMetadata.from_mapping(data, source=path),
        content=body.strip(),
        raw_metadata=data,
    )


def list_steps(steps_dir: Path | str) -> list[str]:
    """Step filenames in *steps_dir*, ordered by step number then name.

    Ordering is numeric, so step-2 sorts before step-10.

    Raises:
        ContentError: If the directory cannot be listed.
    """
    steps_dir = Path(steps_dir)
    try:
        names = [p.name for p in steps_dir.iterdir() if p.is_file()]
    except OSError as e:
        raise ContentError(f"Steps directory not readable: {steps_dir} ({e})") from e

    return sorted(
        (name for name in names if is_step_file(name)),
        key=lambda name: (parse_step_number(name), name),
    )


def find_first_step(steps_dir: Path | str) -> Path:
    """Path of the first step in *steps_dir*.

    Raises:
        ContentError: If the directory holds no step files.
    """
    steps_dir = Path(steps_dir)
    files = list_steps(steps_dir)
    if not files:
        raise ContentError(f"No step files found in: {steps_dir}")
    return steps_dir / files[0]


def count_steps(steps_dir: Path | str) -> int:
    """Number of primary steps, ignoring continuation variants like step-01b."""
    return sum(1 for name in list_steps(steps_dir) if is_primary_step(name))


def resolve_template(template: str, variables: Mapping[str, str]) -> str:
    """Substitute ``{{key}}`` and ``{key}`` placeholders.

    Step content mixes both spellings. Unknown placeholders are left as-is.
    """
    resolved = template
    for key, value in variables.items():
        resolved = resolved.replace("{{" + key + "}}", value)
        resolved = resolved.replace("{" + key + "}", value)
    return resolved


def resolve_step_reference(
    reference: str,
    current_step_file: Path,
    method_path: Path,
    variables: Mapping[str, str],
) -> Path:
    """Turn a step reference from frontmatter into an absolute path.

    Absolute paths pass through. ``./`` and ``../`` references resolve
    against the current step's directory, ``bmm/`` and ``core/`` against the
    bundle root, and any other relative path against the current step's
    directory.
    """
    resolved = resolve_template(reference, variables)
    base_dir = current_step_file.parent

    if os.path.isabs(resolved):
        target = Path(resolved)
    elif resolved.startswith(("./", "../")):
        target = base_dir / resolved
    elif resolved.startswith(METHOD_ROOT_PREFIXES):
        target = method_path / resolved
    else:
        target = base_dir / resolved

    target = Path(os.path.normpath(target))
    logger.debug("Resolved step reference %r -> %s", reference, target)
    return target


def find_successor(
    step: StepUnit,
    method_path: Path,
    variables: Mapping[str, str],
) -> Path | None:
    """Path of the step after *step*, or None when *step* is terminal.

    An explicit ``nextStepFile`` wins; otherwise the next file of the same
    family (see step_family) in the step's own directory is used.
    """
    if step.next_step_file:
        return resolve_step_reference(step.next_step_file, step.file_path, method_path, variables)

    family = step_family(step.file_path.name)
    siblings = [
        name for name in list_steps(step.file_path.parent) if step_family(name) == family
    ]
    try:
        idx = siblings.index(step.file_path.name)
    except ValueError:
        return None
    if idx + 1 < len(siblings):
        return step.file_path.parent / siblings[idx + 1]
    return None


def find_step_by_number(
    steps_dir: Path, step_number: int, family: str | None = None
) -> Path | None:
    """First step file in *steps_dir* carrying *step_number*, primary steps first.

    When *family* is given only files with that family tag are considered.
    """
    for name in list_steps(steps_dir):
        if family is not None and step_family(name) != family:
            continue
        if parse_step_number(name) == step_number:
            return steps_dir / name
    return None
