# === NAVMAP v1 ===
# {
#   "module": "tests.strategies.path_strategies",
#   "purpose": "Hypothesis strategies for archive member names and link targets",
#   "sections": [
#     {"id": "basic-path-strategies", "name": "Basic path strategies", "anchor": "basic-path-strategies", "kind": "section"},
#     {"id": "adversarial-strategies", "name": "Adversarial strategies", "anchor": "adversarial-strategies", "kind": "section"}
#   ]
# }
# === /NAVMAP ===

"""
Hypothesis strategies for archive member names and link targets.

Generates well-formed relative member names (in POSIX and Windows spelling)
and the adversarial shapes a hostile archive uses: absolute paths, ``..``
escapes, NUL injection, and home-directory link targets.
"""

from __future__ import annotations

from hypothesis import strategies as st

# --- Basic Path Strategies ---

_COMPONENT_CHARS = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789._-"


@st.composite
def valid_path_components(draw, max_length: int = 32) -> str:
    """
    Generate one member-name component.

    Never ``.``, ``..``, or anything starting with ``~``.

    Examples:
        - file.txt
        - my-document_v1
    """
    return draw(
        st.text(alphabet=_COMPONENT_CHARS, min_size=1, max_size=max_length).filter(
            lambda part: part not in (".", "..")
        )
    )


@st.composite
def valid_relative_paths(draw, max_depth: int = 5) -> str:
    """
    Generate relative member names that stay under the root.

    Examples:
        - file.txt
        - a/b/c/file.txt
    """
    components = draw(st.lists(valid_path_components(), min_size=1, max_size=max_depth))
    return "/".join(components)


@st.composite
def windows_relative_paths(draw) -> str:
    """Generate relative member names spelled with backslash separators."""
    return draw(valid_relative_paths()).replace("/", "\\")


@st.composite
def balanced_dotdot_paths(draw) -> str:
    """
    Generate paths that use ``..`` without ever climbing above the start.

    Examples:
        - a/../b
        - a/b/../../c/d
    """
    head = draw(st.lists(valid_path_components(), min_size=1, max_size=4))
    climb = draw(st.integers(0, len(head)))
    tail = draw(st.lists(valid_path_components(), min_size=1, max_size=3))
    return "/".join(head + [".."] * climb + tail)


# --- Adversarial Strategies ---


@st.composite
def absolute_paths(draw) -> str:
    """
    Generate rooted, UNC, and drive-letter paths.

    Examples:
        - /tmp/bla/file
        - C:/Windows/system.ini
        - \\\\server\\share\\file
    """
    relative = draw(valid_relative_paths())
    style = draw(st.sampled_from(["posix", "drive", "drive-backslash", "unc"]))
    if style == "posix":
        return "/" + relative
    if style == "drive":
        letter = draw(st.sampled_from("CDEZcdez"))
        return f"{letter}:/{relative}"
    if style == "drive-backslash":
        letter = draw(st.sampled_from("CDEZcdez"))
        return f"{letter}:\\" + relative.replace("/", "\\")
    return "\\\\server\\share\\" + relative.replace("/", "\\")


@st.composite
def path_traversal_attempts(draw) -> str:
    """
    Generate paths whose ``..`` components climb above the starting directory.

    Examples:
        - ../../../etc/passwd
        - dir/../../secrets.yaml
        - a\\..\\..\\file
    """
    head = draw(st.lists(valid_path_components(), min_size=0, max_size=3))
    extra = draw(st.integers(1, 6))
    target = draw(st.sampled_from(["etc/passwd", "admin/users.db", "secrets.yaml", ""]))
    parts = head + [".."] * (len(head) + extra)
    if target:
        parts.append(target)
    path = "/".join(parts)
    if draw(st.booleans()):
        path = path.replace("/", "\\")
    return path


@st.composite
def path_with_null_bytes(draw) -> str:
    """
    Generate paths with an embedded NUL byte.

    Examples:
        - file.txt\x00.jpg
    """
    path = draw(valid_relative_paths())
    position = draw(st.integers(0, len(path)))
    return path[:position] + "\x00" + path[position:]


@st.composite
def tilde_link_targets(draw) -> str:
    """
    Generate link targets that reference a home directory.

    Examples:
        - ~/../../etc/passwd
        - ~root/.ssh/authorized_keys
        - a/~/b
    """
    relative = draw(valid_relative_paths())
    style = draw(st.sampled_from(["home", "user-home", "embedded"]))
    if style == "home":
        return "~/" + relative
    if style == "user-home":
        user = draw(valid_path_components(max_length=8))
        return f"~{user}/{relative}"
    return f"{relative}/~/{draw(valid_path_components())}"
