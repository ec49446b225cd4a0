"""Tests for directory discovery, depth ordering, and the marker policy."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from nestzip.config.models import MarkerSpec
from nestzip.progress import RecordingSink
from nestzip.scanning import (
    DirectoryNode,
    DirectoryScanner,
    ManifestPolicy,
    ScanResult,
    directory_depth,
    sort_deepest_first,
)

MARKERS = [
    MarkerSpec(canonical="__init__.py", alternate="__init__.pyc"),
    MarkerSpec(canonical="__manifest__.py", alternate="__openerp__.py"),
]


def _build_tree(root: Path) -> None:
    for relative in ("a/b/c", "a/d", "e", "e/f/g/h"):
        (root / relative).mkdir(parents=True, exist_ok=True)
    (root / "a" / "file.txt").write_text("x", encoding="utf-8")


def _relative_names(result: ScanResult, root: Path) -> set[str]:
    base = root.resolve()
    return {node.path.relative_to(base).as_posix() for node in result.directories}


def test_scanner_finds_every_descendant(tmp_path: Path) -> None:
    _build_tree(tmp_path)

    result = DirectoryScanner().scan(tmp_path)

    found = _relative_names(result, tmp_path)
    assert found == {"a", "a/b", "a/b/c", "a/d", "e", "e/f", "e/f/g", "e/f/g/h"}
    assert not result.degraded
    assert len(result.directories) == 8


def test_scanner_empty_root_is_healthy(tmp_path: Path) -> None:
    result = DirectoryScanner().scan(tmp_path)

    assert result.directories == []
    assert result.degraded is False


def test_scanner_skips_unreadable_subtree(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "open" / "inner").mkdir(parents=True)
    (tmp_path / "locked" / "hidden").mkdir(parents=True)
    original_iterdir = Path.iterdir

    def _iterdir(self: Path):
        if self.name == "locked":
            raise PermissionError(13, "Permission denied")
        return original_iterdir(self)

    monkeypatch.setattr(Path, "iterdir", _iterdir)
    sink = RecordingSink()

    result = DirectoryScanner(sink=sink).scan(tmp_path)

    found = _relative_names(result, tmp_path)
    assert found == {"locked", "open", "open/inner"}
    assert result.degraded
    assert len(result.failures) == 1
    assert result.failures[0].permission_denied is True
    logs = sink.channel("log")
    assert len(logs) == 1
    assert "Access denied" in logs[0]


def test_scanner_does_not_follow_symlinks_by_default(tmp_path: Path) -> None:
    (tmp_path / "real" / "child").mkdir(parents=True)
    os.symlink(tmp_path / "real", tmp_path / "link", target_is_directory=True)

    result = DirectoryScanner().scan(tmp_path)

    found = _relative_names(result, tmp_path)
    assert found == {"real", "real/child"}


def test_scanner_follows_external_symlinks_without_looping(tmp_path: Path) -> None:
    root = tmp_path / "tree"
    (root / "real").mkdir(parents=True)
    (tmp_path / "outside" / "deep").mkdir(parents=True)
    os.symlink(root, root / "real" / "loop", target_is_directory=True)
    os.symlink(root / "real", root / "alias", target_is_directory=True)
    os.symlink(tmp_path / "outside", root / "external", target_is_directory=True)
    loop_back = tmp_path / "outside" / "deep" / "again"
    os.symlink(tmp_path / "outside", loop_back, target_is_directory=True)

    result = DirectoryScanner(follow_symlinks=True).scan(root)

    found = _relative_names(result, root)
    assert found == {"real", "external", "external/deep"}


def test_directory_depth_counts_segments(tmp_path: Path) -> None:
    assert directory_depth(tmp_path, tmp_path) == 0
    assert directory_depth(tmp_path / "a", tmp_path) == 1
    assert directory_depth(tmp_path / "a" / "b" / "c", tmp_path) == 3

    with pytest.raises(ValueError):
        directory_depth(tmp_path.parent, tmp_path)


def test_sort_deepest_first_places_descendants_before_ancestors(tmp_path: Path) -> None:
    _build_tree(tmp_path)
    root = tmp_path.resolve()
    scan = DirectoryScanner().scan(root)

    ordered = sort_deepest_first(scan.directories, root)

    depths = [directory_depth(node.path, root) for node in ordered]
    assert depths == sorted(depths, reverse=True)
    positions = {node.path: index for index, node in enumerate(ordered)}
    for node in ordered:
        for ancestor in node.path.parents:
            if ancestor in positions:
                assert positions[node.path] < positions[ancestor]


def test_sort_deepest_first_keeps_input_order_for_ties(tmp_path: Path) -> None:
    nodes = [DirectoryNode(tmp_path / name) for name in ("z", "m", "a")]

    ordered = sort_deepest_first(nodes, tmp_path)

    assert [node.name for node in ordered] == ["z", "m", "a"]


def test_directory_node_rechecks_existence(tmp_path: Path) -> None:
    target = tmp_path / "gone"
    target.mkdir()
    node = DirectoryNode(target)

    assert node.exists
    target.rmdir()
    assert not node.exists
    assert node.parent == tmp_path


def test_manifest_policy_requires_both_markers(tmp_path: Path) -> None:
    policy = ManifestPolicy(MARKERS)
    (tmp_path / "__init__.py").write_text("", encoding="utf-8")

    assert policy.should_archive(tmp_path) is False

    (tmp_path / "__manifest__.py").write_text("{}", encoding="utf-8")

    assert policy.should_archive(tmp_path) is True
    assert policy.should_archive(tmp_path) is True


def test_manifest_policy_matches_alternates_case_insensitively(tmp_path: Path) -> None:
    (tmp_path / "__INIT__.PY").write_text("", encoding="utf-8")
    (tmp_path / "__OpenERP__.py").write_text("{}", encoding="utf-8")

    assert ManifestPolicy(MARKERS).should_archive(tmp_path) is True


def test_manifest_policy_ignores_directories_named_like_markers(tmp_path: Path) -> None:
    (tmp_path / "__init__.py").mkdir()
    (tmp_path / "__manifest__.py").write_text("{}", encoding="utf-8")

    assert ManifestPolicy(MARKERS).should_archive(tmp_path) is False


def test_manifest_policy_without_markers_accepts_everything(tmp_path: Path) -> None:
    assert ManifestPolicy([]).should_archive(tmp_path) is True


def test_manifest_policy_treats_listing_errors_as_not_qualified(tmp_path: Path) -> None:
    sink = RecordingSink()
    policy = ManifestPolicy(MARKERS, sink=sink)

    assert policy.should_archive(tmp_path / "missing") is False
    assert any("Could not check markers" in str(line) for line in sink.channel("log"))
