"""Tests for project structure creation and artifact persistence."""

from pathlib import Path

import yaml

from bmad_orchestrator.artifacts import (
    SaveMode,
    create_bmad_structure,
    load_artifact,
    missing_structure,
    resolve_output_path,
    save_artifact,
)


class TestCreateBmadStructure:
    """Laying out _bmad/ and the output folders."""

    def test_layout(self, tmp_path: Path, method_path: Path) -> None:
        project = tmp_path / "demo"
        project.mkdir()

        created = create_bmad_structure(project, method_path, {"project_name": "Demo"})

        assert created == [
            project / "_bmad-output" / "planning-artifacts",
            project / "_bmad-output" / "implementation-artifacts",
        ]
        assert all(p.is_dir() for p in created)
        assert (project / "_bmad" / "bmm").is_symlink()
        assert (project / "_bmad" / "bmm" / "agents" / "pm.agent.yaml").is_file()
        assert (project / "_bmad" / "core").is_dir()

        config = yaml.safe_load((project / "_bmad" / "config.yaml").read_text(encoding="utf-8"))
        assert config == {"project_name": "Demo"}
        assert missing_structure(project) == []

    def test_missing_bundle_dirs_become_plain_dirs(self, tmp_path: Path) -> None:
        project = tmp_path / "demo"
        project.mkdir()

        create_bmad_structure(project, tmp_path / "no-bundle", {})

        assert (project / "_bmad" / "core").is_dir()
        assert not (project / "_bmad" / "core").is_symlink()
        assert (project / "_bmad" / "bmm").is_dir()

    def test_missing_structure_lists_relative_paths(self, tmp_path: Path, method_path: Path) -> None:
        project = tmp_path / "demo"
        project.mkdir()
        assert missing_structure(project) == [
            Path("_bmad/config.yaml"), Path("_bmad/core"), Path("_bmad/bmm"),
        ]

        create_bmad_structure(project, method_path, {})
        (project / "_bmad" / "config.yaml").unlink()
        assert missing_structure(project) == [Path("_bmad/config.yaml")]


class TestSaveArtifact:
    """Append/replace semantics of artifact writes."""

    def test_create(self, tmp_path: Path) -> None:
        path = tmp_path / "out" / "brief.md"
        assert save_artifact(path, "# Brief") is SaveMode.CREATED
        assert load_artifact(path) == "# Brief"

    def test_append_with_blank_line(self, tmp_path: Path) -> None:
        path = tmp_path / "brief.md"
        save_artifact(path, "## Section 1")
        assert save_artifact(path, "## Section 2") is SaveMode.APPENDED
        assert load_artifact(path) == "## Section 1\n\n## Section 2"

    def test_full_document_replaces(self, tmp_path: Path) -> None:
        """Content that already contains the file is written over it."""
        path = tmp_path / "brief.md"
        save_artifact(path, "## Section 1\n")
        assert save_artifact(path, "# Brief\n\n## Section 1\n\n## Section 2") is SaveMode.REPLACED
        assert load_artifact(path) == "# Brief\n\n## Section 1\n\n## Section 2"

    def test_load_missing(self, tmp_path: Path) -> None:
        assert load_artifact(tmp_path / "absent.md") is None


class TestResolveOutputPath:
    def test_relative_resolves_against_project(self, tmp_path: Path) -> None:
        assert resolve_output_path(tmp_path, "docs/brief.md") == tmp_path / "docs" / "brief.md"

    def test_absolute_passes_through(self, tmp_path: Path) -> None:
        target = tmp_path / "elsewhere.md"
        assert resolve_output_path(tmp_path / "demo", str(target)) == target
