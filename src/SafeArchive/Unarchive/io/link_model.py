# === NAVMAP v1 ===
# {
#   "module": "SafeArchive.Unarchive.io.link_model",
#   "purpose": "Track symlinks created during one extraction and reject link loops",
#   "sections": [
#     {"id": "records", "name": "LinkRecord", "anchor": "REC", "kind": "dataclass"},
#     {"id": "model", "name": "LinkResolutionModel", "anchor": "MOD", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""In-memory record of the symlinks created by the current extraction call.

Every symlink is registered here before it is materialized.  Registration
resolves the target through the links already known, so a chain such as
``x -> y`` followed by ``y/z -> ../x`` is recognised as leading back to
``y``.  A link whose target is itself, one of its ancestors, or something
beneath itself is refused with :class:`AncestorLinkError`: writing later entries
through such a link would recurse without bound or silently leave the root.

One model is created per extraction call and discarded with it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple

from ..errors import AncestorLinkError, IllegalLinkPathError
from .path_guard import PathGuard, PathRole, ValidatedPath, normalize_separators

__all__ = ["LinkRecord", "LinkResolutionModel"]

logger = logging.getLogger("SafeArchive.Unarchive")


@dataclass(frozen=True)
class LinkRecord:
    """A symlink accepted by the model.

    Attributes:
        link_path: Resolved location of the link itself.
        resolved_target_path: Location the link leads to once followed.
        target: Separator-normalized target string written to disk.
    """

    link_path: ValidatedPath
    resolved_target_path: ValidatedPath
    target: str


class LinkResolutionModel:
    """Mapping from link path to :class:`LinkRecord` for one extraction call."""

    def __init__(self, root: Path) -> None:
        self._records: Dict[str, LinkRecord] = {}
        self._targets: Dict[str, Tuple[str, ...]] = {}
        self.guard = PathGuard(root, link_index=self._targets)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, relative: object) -> bool:
        return relative in self._records

    def __iter__(self) -> Iterator[LinkRecord]:
        return iter(self._records.values())

    def get(self, relative: str) -> Optional[LinkRecord]:
        return self._records.get(relative)

    def register_symlink(self, link_path: ValidatedPath, raw_target: str) -> LinkRecord:
        """Validate ``raw_target`` for the link at ``link_path`` and record it.

        Raises:
            IllegalLinkPathError: Target is absolute, uses ``~``, or escapes the root.
            AncestorLinkError: Target leads back to the link or one of its ancestors.
        """

        target = self.guard.validate(
            raw_target,
            PathRole.LINK_TARGET,
            base=link_path.parent,
            follow_final=True,
        )
        if target.contains(link_path) or link_path.contains(target):
            raise AncestorLinkError(link_path.relative, raw_target)

        record = LinkRecord(
            link_path=link_path,
            resolved_target_path=target,
            target=normalize_separators(raw_target),
        )
        self._records[link_path.relative] = record
        self._targets[link_path.relative] = target.parts
        logger.debug(
            "registered symlink",
            extra={"stage": "extract", "link": link_path.relative, "target": target.relative},
        )
        return record

    def resolve_hardlink(self, raw_target: str) -> ValidatedPath:
        """Validate a hardlink target relative to the extraction root.

        Hardlinks are never recorded: they name an existing file and cannot
        redirect later entries.  Violations carry the ``walking hardlink:``
        prefix.
        """

        try:
            return self.guard.validate(raw_target, PathRole.LINK_TARGET, follow_final=True)
        except IllegalLinkPathError as exc:
            raise IllegalLinkPathError(exc.path, hardlink=True) from exc
        except AncestorLinkError as exc:
            raise AncestorLinkError(exc.link_path, exc.target, hardlink=True) from exc
