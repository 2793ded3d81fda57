# === NAVMAP v1 ===
# {
#   "module": "SafeArchive.Unarchive.io.extraction_policy",
#   "purpose": "Configuration and validation for archive extraction policies",
#   "sections": [
#     {"id": "policy", "name": "Extraction Policy", "anchor": "POL", "kind": "pydantic"},
#     {"id": "defaults", "name": "Defaults & Factory", "anchor": "DEF", "kind": "factory"},
#     {"id": "validation", "name": "Policy Validation", "anchor": "VAL", "kind": "validators"}
#   ]
# }
# === /NAVMAP ===

"""Configuration and validation for archive extraction policies.

This module provides the ExtractionSettings Pydantic v2 model consumed by the
orchestrator.  Path and link safety checks are not configurable: every policy
here only tightens (or relaxes) behaviour on top of the zip-slip and
link-loop guarantees, which always apply.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ExtractionSettings(BaseModel):
    """Pydantic v2 model for archive extraction policies.

    Policies:

    **Layout**
    - strip_components: Leading path components removed from every entry
    - inspect_first: Validate the whole archive before writing anything

    **Links**
    - allow_symlinks: Permit symlink entries (targets are always validated)
    - allow_hardlinks: Permit hardlink entries (targets are always validated)

    **Budgets**
    - max_entries: Entry count budget
    - max_file_size_bytes: Per-file size limit (declared and streamed)
    - copy_buffer_size: Chunk size used when streaming file content

    **Permissions**
    - preserve_permissions: Apply archive mode bits (setuid/setgid/sticky stripped)
    - file_mode / dir_mode: Modes applied when permissions are not preserved
    """

    model_config = ConfigDict(
        validate_assignment=True,
        str_strip_whitespace=True,
        extra="forbid",  # Reject unknown fields
    )

    # ========================================================================
    # Layout
    # ========================================================================

    strip_components: int = Field(
        default=0,
        ge=0,
        le=255,
        description="Number of leading path components removed from each entry",
    )

    inspect_first: bool = Field(
        default=False,
        description="Run a validation-only pass over the archive before extracting",
    )

    # ========================================================================
    # Links
    # ========================================================================

    allow_symlinks: bool = Field(
        default=True,
        description="Allow symlink entries (targets must stay within the root)",
    )

    allow_hardlinks: bool = Field(
        default=True,
        description="Allow hardlink entries (targets must stay within the root)",
    )

    # ========================================================================
    # Budgets
    # ========================================================================

    max_entries: int = Field(
        default=1_000_000,
        ge=1,
        le=100_000_000,
        description="Maximum entry count",
    )

    max_file_size_bytes: int = Field(
        default=16 * 1024 * 1024 * 1024,  # 16 GiB
        ge=1,
        le=1024 * 1024 * 1024 * 1024,  # 1 TiB
        description="Maximum per-file size in bytes",
    )

    copy_buffer_size: int = Field(
        default=64 * 1024,  # 64 KiB
        ge=1024,
        le=64 * 1024 * 1024,
        description="Chunk size used to stream file content to disk",
    )

    # ========================================================================
    # Permissions
    # ========================================================================

    preserve_permissions: bool = Field(
        default=True,
        description="Apply permission bits recorded in the archive",
    )

    file_mode: int = Field(
        default=0o644,
        description="File mode used when permissions are not preserved",
    )

    dir_mode: int = Field(
        default=0o755,
        description="Directory mode used when permissions are not preserved",
    )

    # ========================================================================
    # VALIDATORS
    # ========================================================================

    @field_validator("file_mode", "dir_mode", mode="before")
    @classmethod
    def validate_mode(cls, v: int | str) -> int:
        """Accept octal strings or int file modes."""
        if isinstance(v, str):
            v = int(v, 8)
        if not isinstance(v, int):
            raise ValueError(f"Mode must be int or octal string, got {type(v)}")
        if v <= 0 or v > 0o777:
            raise ValueError(f"Mode must be in range [0o001, 0o777], got {oct(v)}")
        return v

    # ========================================================================
    # METHODS
    # ========================================================================

    def effective_mode(self, archive_mode: int, *, is_dir: bool) -> int | None:
        """Return the mode to apply for an entry, or ``None`` to keep the default.

        A zero archive mode means the producer recorded no permission bits
        (zip archives written on Windows), so the umask-derived mode stays.
        """
        if not self.preserve_permissions:
            return self.dir_mode if is_dir else self.file_mode
        safe_mode = archive_mode & 0o777
        if safe_mode == 0:
            return None
        return safe_mode

    def summary(self) -> dict[str, str]:
        """Get a human-readable summary of all policies."""
        return {
            "Strip Components": str(self.strip_components),
            "Inspect First": "yes" if self.inspect_first else "no",
            "Symlinks": "allowed" if self.allow_symlinks else "rejected",
            "Hardlinks": "allowed" if self.allow_hardlinks else "rejected",
            "Max Entries": f"{self.max_entries:,}",
            "Max File Size": f"{self.max_file_size_bytes / (1024**3):.1f} GiB",
            "Preserve Permissions": "yes" if self.preserve_permissions else "no",
            "Dir Mode": oct(self.dir_mode),
            "File Mode": oct(self.file_mode),
        }


PolicyPreset = Literal["safe", "strict", "lenient"]


def safe_defaults() -> ExtractionSettings:
    """Factory for the default extraction settings."""
    return ExtractionSettings()


def strict_defaults() -> ExtractionSettings:
    """Factory for strict extraction settings.

    Validates the whole archive before writing, refuses link entries, and
    ignores archive permission bits.  Use for archives from adversarial sources.
    """
    return ExtractionSettings(
        inspect_first=True,
        allow_symlinks=False,
        allow_hardlinks=False,
        max_entries=10_000,
        max_file_size_bytes=100 * 1024 * 1024,  # 100 MiB
        preserve_permissions=False,
    )


def lenient_defaults() -> ExtractionSettings:
    """Factory for lenient extraction settings (larger budgets, single pass)."""
    return ExtractionSettings(
        max_entries=100_000_000,
        max_file_size_bytes=1024 * 1024 * 1024 * 1024,  # 1 TiB
    )


def settings_for_preset(preset: PolicyPreset) -> ExtractionSettings:
    """Return the settings factory output matching ``preset``."""
    factories = {
        "safe": safe_defaults,
        "strict": strict_defaults,
        "lenient": lenient_defaults,
    }
    return factories[preset]()
