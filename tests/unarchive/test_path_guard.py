# === NAVMAP v1 ===
# {
#   "module": "tests.unarchive.test_path_guard",
#   "purpose": "Unit tests for PathGuard validation of entry paths and link targets",
#   "sections": [
#     {"id": "entries", "name": "Entry Path Tests", "anchor": "ENT", "kind": "tests"},
#     {"id": "targets", "name": "Link Target Tests", "anchor": "TGT", "kind": "tests"},
#     {"id": "links", "name": "Link-Aware Resolution Tests", "anchor": "LNK", "kind": "tests"}
#   ]
# }
# === /NAVMAP ===

"""Unit tests for :class:`PathGuard` and :class:`ValidatedPath`."""

from __future__ import annotations

from pathlib import Path

import pytest

from SafeArchive.Unarchive.errors import AncestorLinkError, IllegalLinkPathError, IllegalPathError
from SafeArchive.Unarchive.io.path_guard import (
    PathGuard,
    PathRole,
    ValidatedPath,
    normalize_separators,
    split_components,
)

ROOT = Path("/srv/extract")


@pytest.fixture
def guard() -> PathGuard:
    return PathGuard(ROOT)


# --- Entry paths -------------------------------------------------------------


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("file.txt", ("file.txt",)),
        ("dir/file.txt", ("dir", "file.txt")),
        ("dir\\sub\\file.txt", ("dir", "sub", "file.txt")),
        ("./dir//file.txt", ("dir", "file.txt")),
        ("dir/", ("dir",)),
        ("a/b/../c", ("a", "c")),
        ("a/./b/./", ("a", "b")),
        ("~/not-special-for-entries", ("~", "not-special-for-entries")),
    ],
)
def test_entry_paths_are_normalized(guard, raw, expected) -> None:
    validated = guard.validate(raw)

    assert validated.parts == expected
    assert validated.absolute == ROOT.joinpath(*expected)
    assert validated.root == ROOT


@pytest.mark.parametrize(
    "raw",
    [
        "../file",
        "a/../../file",
        "..",
        "..\\evil.txt",
        "/tmp/bla/file",
        "\\\\server\\share\\file",
        "C:\\Windows\\system.ini",
        "c:relative-to-drive",
        "file\x00.txt",
    ],
)
def test_illegal_entry_paths(guard, raw) -> None:
    with pytest.raises(IllegalPathError) as excinfo:
        guard.validate(raw)

    assert excinfo.value.path == raw
    assert str(excinfo.value) == f"illegal path in archive: '{raw}'"


def test_root_entry_path(guard) -> None:
    validated = guard.validate("./")

    assert validated.is_root
    assert str(validated) == "."
    assert validated.parent == validated


def test_validated_path_helpers(guard) -> None:
    validated = guard.validate("a/b/c.txt")

    assert validated.relative == "a/b/c.txt"
    assert validated.name == "c.txt"
    assert validated.parent.relative == "a/b"
    assert validated.parent.contains(validated)
    assert not validated.contains(validated.parent)
    assert guard.root_path().contains(validated)


def test_validated_path_cannot_be_built_directly() -> None:
    with pytest.raises(TypeError):
        ValidatedPath(("a",), ROOT)


# --- Link targets ------------------------------------------------------------


def test_link_target_resolves_from_link_directory(guard) -> None:
    base = guard.validate("a/b")

    target = guard.validate("../c/file", PathRole.LINK_TARGET, base=base)

    assert target.relative == "a/c/file"


@pytest.mark.parametrize(
    "raw",
    ["/tmp/bla/file", "../../file", "~", "~/x", "~user/x", "x/~/y", "", "D:/x"],
)
def test_illegal_link_targets(guard, raw) -> None:
    base = guard.validate("a")

    with pytest.raises(IllegalLinkPathError) as excinfo:
        guard.validate(raw, PathRole.LINK_TARGET, base=base)

    assert str(excinfo.value) == f"illegal link path in archive: '{raw}'"
    assert excinfo.value.hardlink is False


def test_tilde_inside_component_is_allowed_for_links(guard) -> None:
    target = guard.validate("backup~/file", PathRole.LINK_TARGET)

    assert target.relative == "backup~/file"


# --- Link-aware resolution -------------------------------------------------------


def test_parent_of_symlink_pops_physical_location() -> None:
    links = {"a/b/s": ("c", "d", "e")}
    guard = PathGuard(ROOT, link_index=links)

    validated = guard.validate("a/b/s/../f")

    assert validated.relative == "c/d/f"


def test_final_component_is_not_followed_by_default() -> None:
    guard = PathGuard(ROOT, link_index={"alias": ("real",)})

    assert guard.validate("alias").relative == "alias"
    assert guard.validate("alias", follow_final=True).relative == "real"
    assert guard.validate("alias/x").relative == "real/x"


def test_link_chain_loop_is_bounded() -> None:
    guard = PathGuard(ROOT, link_index={"x": ("y",), "y": ("x",)}, max_link_hops=8)

    with pytest.raises(AncestorLinkError):
        guard.validate("x/file")


def test_escape_after_following_link_is_rejected() -> None:
    guard = PathGuard(ROOT, link_index={"deep": ("a",)})

    with pytest.raises(IllegalPathError):
        guard.validate("deep/../../escape")


def test_normalization_helpers() -> None:
    assert normalize_separators("a\\b/c") == "a/b/c"
    assert split_components("/a//./b/") == ["a", "b"]
