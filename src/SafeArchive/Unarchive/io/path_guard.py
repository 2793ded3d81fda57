# === NAVMAP v1 ===
# {
#   "module": "SafeArchive.Unarchive.io.path_guard",
#   "purpose": "Classify raw archive path strings as safe relative paths or violations",
#   "sections": [
#     {"id": "normalization", "name": "Separator Normalization", "anchor": "NRM", "kind": "helpers"},
#     {"id": "validated-path", "name": "ValidatedPath", "anchor": "VPT", "kind": "dataclass"},
#     {"id": "guard", "name": "PathGuard", "anchor": "GRD", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Path validation for untrusted archive entries and link targets.

The guard never touches the filesystem.  Paths are resolved lexically,
component by component, because intermediate directories usually do not exist
yet while an archive is being streamed.  The only state consulted is the index
of symlinks created earlier in the same extraction call, supplied by
:class:`~SafeArchive.Unarchive.io.link_model.LinkResolutionModel`; a ``..``
that follows such a link pops the link's target, not the link itself.

Entry paths resolve against the extraction root.  Link targets resolve
against the directory that contains the link.
"""

from __future__ import annotations

import re
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Mapping, Optional, Tuple

from ..errors import AncestorLinkError, IllegalLinkPathError, IllegalPathError, UnarchiveError

__all__ = [
    "MAX_LINK_HOPS",
    "PathRole",
    "ValidatedPath",
    "PathGuard",
    "normalize_separators",
    "split_components",
]

# Mirrors the POSIX MAXSYMLINKS bound used by path resolution in the kernel.
MAX_LINK_HOPS = 40

_DRIVE_PREFIX = re.compile(r"^[A-Za-z]:")
_GUARD_TOKEN = object()


class PathRole(Enum):
    """What a raw path string names inside an archive."""

    ENTRY_PATH = "entry"
    LINK_TARGET = "link"


def normalize_separators(raw_path: str) -> str:
    """Translate backslash separators so origin OS does not affect validation."""

    return raw_path.replace("\\", "/")


def is_absolute(normalized: str) -> bool:
    """Return ``True`` for rooted, UNC, or drive-letter paths."""

    return normalized.startswith("/") or bool(_DRIVE_PREFIX.match(normalized))


def split_components(normalized: str) -> List[str]:
    """Split on ``/`` dropping empty and ``.`` components."""

    return [part for part in normalized.split("/") if part not in ("", ".")]


@dataclass(frozen=True)
class ValidatedPath:
    """A path that passed :class:`PathGuard` validation.

    Instances can only be produced by the guard; constructing one directly
    raises ``TypeError``.  ``parts`` holds the normalized, ``..``-free
    components relative to the extraction root (empty for the root itself).
    """

    parts: Tuple[str, ...]
    root: Path
    _token: object = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self._token is not _GUARD_TOKEN:
            raise TypeError("ValidatedPath instances are created by PathGuard.validate")

    @property
    def relative(self) -> str:
        """Forward-slash separated path relative to the root."""
        return "/".join(self.parts)

    @property
    def absolute(self) -> Path:
        """Absolute filesystem location under the extraction root."""
        return self.root.joinpath(*self.parts)

    @property
    def name(self) -> str:
        return self.parts[-1] if self.parts else ""

    @property
    def is_root(self) -> bool:
        return not self.parts

    @property
    def parent(self) -> "ValidatedPath":
        """The containing directory; the root is its own parent."""
        return ValidatedPath(self.parts[:-1], self.root, _GUARD_TOKEN)

    def contains(self, other: "ValidatedPath") -> bool:
        """Return ``True`` when ``other`` is this path or lies beneath it."""
        return other.parts[: len(self.parts)] == self.parts

    def __str__(self) -> str:
        return self.relative or "."


class PathGuard:
    """Validate raw archive paths against a fixed extraction root.

    Args:
        root: Absolute extraction root.
        link_index: Read-only mapping from a symlink's relative path to its
            resolved target components.  Owned by the link model; the guard
            only reads it.
        max_link_hops: Link substitutions allowed while resolving one path.
    """

    def __init__(
        self,
        root: Path,
        link_index: Optional[Mapping[str, Tuple[str, ...]]] = None,
        *,
        max_link_hops: int = MAX_LINK_HOPS,
    ) -> None:
        self._root = root
        self._links: Mapping[str, Tuple[str, ...]] = link_index if link_index is not None else {}
        self._max_link_hops = max_link_hops

    @property
    def root(self) -> Path:
        return self._root

    def root_path(self) -> ValidatedPath:
        """Return the extraction root itself as a validated path."""
        return ValidatedPath((), self._root, _GUARD_TOKEN)

    def validate(
        self,
        raw_path: str,
        role: PathRole = PathRole.ENTRY_PATH,
        *,
        base: Optional[ValidatedPath] = None,
        follow_final: bool = False,
    ) -> ValidatedPath:
        """Classify ``raw_path`` or raise the matching violation.

        Args:
            raw_path: Attacker-controlled string from the archive.
            role: ``ENTRY_PATH`` resolves from the root; ``LINK_TARGET``
                resolves from ``base`` (the directory containing the link).
            base: Starting directory for link targets; defaults to the root.
            follow_final: Also follow the last component when it names a
                known symlink (link targets are followed, entry names are not).

        Raises:
            IllegalPathError: Entry path is absolute or escapes the root.
            IllegalLinkPathError: Link target is absolute, uses ``~``, or escapes.
            AncestorLinkError: Resolution cycles through known symlinks.
        """

        normalized = normalize_separators(raw_path)
        if "\x00" in normalized or is_absolute(normalized):
            raise self._violation(raw_path, role)

        components = split_components(normalized)
        if role is PathRole.LINK_TARGET:
            if not normalized:
                raise self._violation(raw_path, role)
            if (components and components[0].startswith("~")) or "~" in components:
                raise self._violation(raw_path, role)

        start: Tuple[str, ...] = base.parts if base is not None else ()
        # Pure lexical pass first: a string that climbs out of its starting
        # directory without help from links is illegal on its own.
        self._walk(start, components, {}, raw_path, role, follow_final=False)
        parts = self._walk(start, components, self._links, raw_path, role, follow_final=follow_final)
        return ValidatedPath(parts, self._root, _GUARD_TOKEN)

    def _walk(
        self,
        start: Tuple[str, ...],
        components: List[str],
        links: Mapping[str, Tuple[str, ...]],
        raw_path: str,
        role: PathRole,
        *,
        follow_final: bool,
    ) -> Tuple[str, ...]:
        stack = list(start)
        pending = deque(components)
        hops = 0
        while pending:
            part = pending.popleft()
            if part == "..":
                if not stack:
                    raise self._violation(raw_path, role)
                stack.pop()
                continue
            stack.append(part)
            if not pending and not follow_final:
                break
            target = links.get("/".join(stack))
            if target is None:
                continue
            hops += 1
            if hops > self._max_link_hops:
                raise AncestorLinkError("/".join(stack), raw_path)
            stack = []
            pending.extendleft(reversed(target))
        return tuple(stack)

    @staticmethod
    def _violation(raw_path: str, role: PathRole) -> UnarchiveError:
        if role is PathRole.LINK_TARGET:
            return IllegalLinkPathError(raw_path)
        return IllegalPathError(raw_path)
