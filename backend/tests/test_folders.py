"""
Tests for the folder model and filesystem helpers.

These tests verify:
1. Target and staging paths follow unset / relative / absolute rules
2. Folder settings come from DEFAULT plus the own or UNDEFINED section
3. The arena walks depth-first in alphabetical order
4. Listing, snapshot and cleanup helpers behave deterministically
"""

import os
from pathlib import Path

import pytest

from cinbox.folders import (
    FolderArena,
    FolderDepthError,
    FolderError,
    FolderMoveError,
    FolderNotFoundError,
    MaskError,
    TargetResolutionError,
    paths,
)


TREE_CONFIG = """\
[__DEFAULT__]
HASH_TYPE = md5

[__UNDEFINED__]
COPY_EXCLUDE[] = *.tmp

[.]
TARGET_FOLDER = /archive/[@ITEM_ID@]

[sub]
TARGET_FOLDER = renamed

[abs]
TARGET_FOLDER = /elsewhere/abs_target
"""


def build_arena(config, base: Path, sub_dirs):
    """Arena for ``base`` and the given sub_dirs (parents before children)."""
    arena = FolderArena()
    root = arena.add(base, base, None, base.name, config)
    root.init_folder()
    ids = {".": root.folder_id}
    for sub_dir in sub_dirs:
        parent = os.path.dirname(sub_dir) or "."
        folder = arena.add(base / sub_dir, base, ids[parent], base.name, config)
        folder.init_folder()
        ids[sub_dir] = folder.folder_id
    return arena, {sub_dir: arena.get(i) for sub_dir, i in ids.items()}


# -----------------------------------------------------------------------------
# Target resolution
# -----------------------------------------------------------------------------

class TestTargetFolder:
    """Tests for Folder.target_folder()."""

    @pytest.fixture
    def folders(self, tmp_path: Path, make_resolver):
        config = make_resolver(TREE_CONFIG, ITEM_ID="ITEM001")
        _arena, folders = build_arena(
            config,
            tmp_path / "ITEM001",
            ["abs", "abs/deeper", "plain", "plain/nested", "sub"],
        )
        return folders

    def test_absolute_target_used_as_is(self, folders):
        """An absolute TARGET_FOLDER is the target."""
        assert folders["."].target_folder() == "/archive/ITEM001"
        assert folders["abs"].target_folder() == "/elsewhere/abs_target"

    def test_unset_target_appends_basename(self, folders):
        """Without TARGET_FOLDER the parent's target plus own name is used."""
        assert folders["plain"].target_folder() == "/archive/ITEM001/plain"
        assert folders["plain/nested"].target_folder() == "/archive/ITEM001/plain/nested"

    def test_relative_target_appends_value(self, folders):
        """A relative TARGET_FOLDER replaces the basename below the parent target."""
        assert folders["sub"].target_folder() == "/archive/ITEM001/renamed"

    def test_staging_masks_absolute_levels(self, folders):
        """The last segment of each absolute level goes through TARGET_STAGE."""
        assert folders["."].target_folder(staging=True) == "/archive/temp_ITEM001"
        assert folders["abs"].target_folder(staging=True) == "/elsewhere/temp_abs_target"

    def test_staging_mirrors_below_absolute_level(self, folders):
        """Levels below an absolute target keep their own segment."""
        assert folders["plain/nested"].target_folder(staging=True) == "/archive/temp_ITEM001/plain/nested"
        assert folders["sub"].target_folder(staging=True) == "/archive/temp_ITEM001/renamed"
        assert folders["abs/deeper"].target_folder(staging=True) == "/elsewhere/temp_abs_target/deeper"

    def test_own_absolute_target(self, folders):
        """Only folders that configure an absolute target report one."""
        assert folders["."].own_absolute_target() == "/archive/ITEM001"
        assert folders["abs"].own_absolute_target() == "/elsewhere/abs_target"
        assert folders["plain"].own_absolute_target() is None
        assert folders["sub"].own_absolute_target() is None

    def test_sub_dir_of_root_is_dot(self, folders):
        """The item root is addressed as '.'."""
        assert folders["."].sub_dir() == "."
        assert folders["plain/nested"].sub_dir() == "plain/nested"

    def test_root_without_target_fails(self, tmp_path: Path, make_resolver):
        """An unset target with no parent cannot be resolved."""
        config = make_resolver("[__DEFAULT__]\nHASH_TYPE = md5\n")
        _arena, folders = build_arena(config, tmp_path / "ITEM001", [])

        with pytest.raises(TargetResolutionError):
            folders["."].target_folder()

    def test_relative_root_target_fails(self, tmp_path: Path, make_resolver):
        """A relative target on the root has nothing to be relative to."""
        config = make_resolver("[.]\nTARGET_FOLDER = relative/path\n")
        _arena, folders = build_arena(config, tmp_path / "ITEM001", [])

        with pytest.raises(FolderError):
            folders["."].target_folder()

    def test_custom_stage_mask(self, tmp_path: Path, make_resolver):
        """TARGET_STAGE replaces the default temp_%s mask."""
        config = make_resolver("[.]\nTARGET_FOLDER = /archive/X\nTARGET_STAGE = %s.staging\n")
        _arena, folders = build_arena(config, tmp_path / "ITEM001", [])

        assert folders["."].target_folder(staging=True) == "/archive/X.staging"

    def test_invalid_stage_mask(self, tmp_path: Path, make_resolver):
        """A mask without %s is rejected."""
        config = make_resolver("[.]\nTARGET_FOLDER = /archive/X\nTARGET_STAGE = nomask\n")
        _arena, folders = build_arena(config, tmp_path / "ITEM001", [])

        with pytest.raises(MaskError):
            folders["."].target_folder(staging=True)


class TestFolderConfig:
    """Tests for per-folder config inheritance."""

    def test_own_section_overlays_default(self, tmp_path: Path, make_resolver):
        """A folder with its own section gets DEFAULT plus that section."""
        config = make_resolver(TREE_CONFIG, ITEM_ID="ITEM001")
        _arena, folders = build_arena(config, tmp_path / "ITEM001", ["sub"])

        assert folders["sub"].config.get("HASH_TYPE") == "md5"
        assert folders["sub"].config.get("TARGET_FOLDER") == "renamed"
        assert folders["sub"].config.get("COPY_EXCLUDE") is None

    def test_undefined_section_applies_without_own(self, tmp_path: Path, make_resolver):
        """A folder without its own section gets DEFAULT plus UNDEFINED."""
        config = make_resolver(TREE_CONFIG, ITEM_ID="ITEM001")
        _arena, folders = build_arena(config, tmp_path / "ITEM001", ["plain"])

        assert folders["plain"].config.get("HASH_TYPE") == "md5"
        assert folders["plain"].config.get("COPY_EXCLUDE") == ["*.tmp"]

    def test_folders_do_not_share_config(self, tmp_path: Path, make_resolver):
        """Each folder holds its own resolver copy."""
        config = make_resolver(TREE_CONFIG, ITEM_ID="ITEM001")
        _arena, folders = build_arena(config, tmp_path / "ITEM001", ["plain", "sub"])

        folders["plain"].config.add_placeholder("TASK_NAME", "only-here")

        assert "[@TASK_NAME@]" not in folders["sub"].config.placeholders
        assert "[@TASK_NAME@]" not in config.placeholders


class TestFolderArena:
    """Tests for FolderArena."""

    def test_walk_is_depth_first_alphabetical(self, tmp_path: Path, make_resolver):
        """Children are visited alphabetically, each followed by its subtree."""
        config = make_resolver(TREE_CONFIG, ITEM_ID="ITEM001")
        arena, folders = build_arena(
            config,
            tmp_path / "ITEM001",
            ["b", "a", "a/z", "a/y"],
        )

        order = [f.sub_dir() for f in arena.walk(folders["."].folder_id)]

        assert order == [".", "a", "a/y", "a/z", "b"]

    def test_parent_and_children(self, tmp_path: Path, make_resolver):
        """Folders refer to their parent by ID."""
        config = make_resolver(TREE_CONFIG, ITEM_ID="ITEM001")
        arena, folders = build_arena(config, tmp_path / "ITEM001", ["a", "a/y"])

        assert folders["a/y"].parent is folders["a"]
        assert folders["."].parent is None
        assert arena.children_of(folders["."]) == [folders["a"]]
        assert arena.find(tmp_path / "ITEM001" / "a") is folders["a"]

    def test_unknown_id_fails(self):
        """Looking up an ID that is not in the arena fails."""
        arena = FolderArena()

        with pytest.raises(FolderNotFoundError):
            arena.get(3)
        with pytest.raises(FolderNotFoundError):
            arena.add("/x/y", "/x", parent_id=7)

    def test_clear(self, tmp_path: Path, make_resolver):
        """clear() empties the arena and restarts IDs."""
        config = make_resolver(TREE_CONFIG, ITEM_ID="ITEM001")
        arena, _folders = build_arena(config, tmp_path / "ITEM001", ["a"])

        arena.clear()

        assert len(arena) == 0
        assert arena.add(tmp_path, tmp_path).folder_id == 0

    def test_move_root_folder(self, tmp_path: Path, make_resolver):
        """Moving the root folder moves its base folder along."""
        base = tmp_path / "todo" / "ITEM001"
        base.mkdir(parents=True)
        (tmp_path / "done").mkdir()
        config = make_resolver(TREE_CONFIG, ITEM_ID="ITEM001")
        _arena, folders = build_arena(config, base, [])

        new_path = folders["."].move_folder(tmp_path / "done" / "ITEM001")

        assert new_path.is_dir()
        assert not base.exists()
        assert folders["."].base_folder == new_path
        assert folders["."].sub_dir() == "."


# -----------------------------------------------------------------------------
# Path helpers
# -----------------------------------------------------------------------------

class TestPaths:
    """Tests for cinbox.folders.paths."""

    def test_relative_path(self, tmp_path: Path):
        """The base itself is '.', everything else is relative."""
        assert paths.relative_path(tmp_path, tmp_path) == "."
        assert paths.relative_path(tmp_path / "a" / "b", tmp_path) == "a/b"

    def test_list_subfolders(self, tmp_path: Path):
        """Subfolders are listed depth-first and sorted."""
        for sub in ("b", "a/y", "a/x"):
            (tmp_path / sub).mkdir(parents=True)
        (tmp_path / "file.txt").write_text("x")

        result = [paths.relative_path(p, tmp_path) for p in paths.list_subfolders(tmp_path)]

        assert result == ["a", "a/x", "a/y", "b"]

    def test_list_subfolders_depth_limit(self, tmp_path: Path):
        """A tree deeper than max_depth fails; exactly max_depth is fine."""
        (tmp_path / "a" / "b").mkdir(parents=True)

        assert len(paths.list_subfolders(tmp_path, max_depth=2)) == 2
        with pytest.raises(FolderDepthError):
            paths.list_subfolders(tmp_path, max_depth=1)

    def test_folder_files_skips_dirs(self, tmp_path: Path):
        """folder_files returns only plain files, sorted."""
        (tmp_path / "z.txt").write_text("z")
        (tmp_path / "a.txt").write_text("a")
        (tmp_path / "dir").mkdir()

        assert [p.name for p in paths.folder_files(tmp_path)] == ["a.txt", "z.txt"]

    def test_glob_entries_no_duplicates(self, tmp_path: Path):
        """Entries matched by several patterns appear once."""
        (tmp_path / "a.wav").write_text("a")
        (tmp_path / "b.txt").write_text("b")

        result = paths.glob_entries(tmp_path, ["*.wav", "a.*"])

        assert result == [tmp_path / "a.wav"]

    def test_dirlist_to_text_excludes_keys(self, tmp_path: Path):
        """Excluded stat keys are left out of the snapshot."""
        entry = tmp_path / "file.txt"
        entry.write_text("x")

        text = paths.dirlist_to_text([entry], ["atime"])

        assert f"File: {entry}" in text
        assert "atime" not in text
        assert "mtime" in text

    def test_dirlist_to_text_rejects_string_keys(self, tmp_path: Path):
        """exclude_keys must be a list, not a single string."""
        with pytest.raises(FolderError):
            paths.dirlist_to_text([tmp_path], "atime")

    def test_remove_empty_subfolders(self, tmp_path: Path):
        """Empty trees are removed bottom-up; non-empty ones are kept."""
        empty = tmp_path / "empty"
        (empty / "a" / "b").mkdir(parents=True)
        kept = tmp_path / "kept"
        (kept / "empty_child").mkdir(parents=True)
        (kept / "file.txt").write_text("x")

        assert paths.remove_empty_subfolders(empty) is True
        assert not empty.exists()
        assert paths.remove_empty_subfolders(kept) is False
        assert (kept / "file.txt").exists()
        assert not (kept / "empty_child").exists()

    def test_touch_file_creates_parents(self, tmp_path: Path):
        """touch_file creates missing parent folders."""
        target = tmp_path / "a" / "b" / "file.md5"

        assert paths.touch_file(target) is True
        assert target.is_file()

    def test_apply_mask(self):
        """Masks take exactly one %s."""
        assert paths.apply_mask("%s.md5", "ITEM") == "ITEM.md5"
        with pytest.raises(MaskError):
            paths.apply_mask("%s-%s", "ITEM")

    def test_move_path_refuses_existing_target(self, tmp_path: Path):
        """Moving onto an existing path fails and leaves both in place."""
        source = tmp_path / "source"
        source.mkdir()
        target = tmp_path / "target"
        target.mkdir()

        with pytest.raises(FolderMoveError):
            paths.move_path(source, target)
        assert source.is_dir()

    def test_move_path_requires_target_parent(self, tmp_path: Path):
        """The target's parent folder must exist."""
        source = tmp_path / "source"
        source.mkdir()

        with pytest.raises(FolderMoveError):
            paths.move_path(source, tmp_path / "missing" / "source")
