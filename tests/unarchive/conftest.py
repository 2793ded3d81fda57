# === NAVMAP v1 ===
# {
#   "module": "tests.unarchive.conftest",
#   "purpose": "Shared pytest fixtures for the unarchive suite",
#   "sections": [
#     {"id": "fixtures", "name": "Fixtures", "anchor": "FIX", "kind": "fixtures"}
#   ]
# }
# === /NAVMAP ===

"""Fixtures for building archives and isolating configuration state."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, Sequence

import pytest

from SafeArchive.Unarchive.settings import reset_default_config
from tests.unarchive.archive_builders import Member, write_archive

ArchiveFactory = Callable[..., Path]


@pytest.fixture
def make_archive(tmp_path: Path) -> ArchiveFactory:
    """Return ``build(fmt, members, stem="archive") -> Path`` writing under ``tmp_path``."""

    def build(fmt: str, members: Sequence[Member], stem: str = "archive") -> Path:
        return write_archive(tmp_path / f"{stem}.{fmt}", fmt, members)

    return build


@pytest.fixture
def target_dir(tmp_path: Path) -> Path:
    """Extraction root that does not exist yet."""
    return tmp_path / "out"


@pytest.fixture
def extract_logger() -> logging.Logger:
    logger = logging.getLogger("SafeArchive.Unarchive.tests")
    logger.setLevel(logging.DEBUG)
    return logger


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch: pytest.MonkeyPatch):
    """Drop ``UNARCHIVE_*`` variables and the cached config around every test."""

    for key in list(os.environ):
        if key.upper().startswith("UNARCHIVE_"):
            monkeypatch.delenv(key, raising=False)
    reset_default_config()
    yield
    reset_default_config()
