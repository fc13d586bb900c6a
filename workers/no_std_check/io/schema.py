"""
Schema — Pydantic models for toolchain query results and the sysroot receipt.

Inputs parsed from the toolchain:
  1. RustcVersionMeta — ``rustc -vV``.
  2. CargoMetadata    — ``cargo metadata --format-version 1 --no-deps``.

Output written into the synthetic sysroot:
  3. SysrootReceipt   — sysroot_receipt.json, what was copied and omitted.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from no_std_check import PACKAGE_NAME, SCHEMA_VERSION, __version__


class Channel(str, Enum):
    """Release channel, derived from the suffix of the rustc release string."""
    STABLE = "stable"
    BETA = "beta"
    NIGHTLY = "nightly"
    DEV = "dev"

    @classmethod
    def from_release(cls, release: str) -> "Channel":
        # 1.80.0-nightly, 1.79.0-beta.4, 1.81.0-dev, 1.78.0
        if "-nightly" in release:
            return cls.NIGHTLY
        if "-beta" in release:
            return cls.BETA
        if "-dev" in release:
            return cls.DEV
        return cls.STABLE


# ── rustc -vV ────────────────────────────────────────────────────────────────

class RustcVersionMeta(BaseModel):
    """Verbose version information of the active rustc."""

    release: str
    host: str
    channel: Channel
    commit_hash: Optional[str] = None
    llvm_version: Optional[str] = None

    @classmethod
    def parse(cls, text: str) -> "RustcVersionMeta":
        """
        Parse ``rustc -vV`` output.

        The first line is the short version; the rest are ``key: value``
        pairs.  Missing ``release`` or ``host`` raises ValueError.
        """
        fields = {}
        for line in text.splitlines()[1:]:
            key, sep, value = line.partition(":")
            if sep:
                fields[key.strip()] = value.strip()

        for required in ("release", "host"):
            if not fields.get(required):
                raise ValueError(f"rustc -vV output has no '{required}' line")

        commit = fields.get("commit-hash")
        return cls(
            release=fields["release"],
            host=fields["host"],
            channel=Channel.from_release(fields["release"]),
            commit_hash=None if commit in (None, "unknown") else commit,
            llvm_version=fields.get("LLVM version"),
        )


# ── cargo metadata ───────────────────────────────────────────────────────────

class CargoMetadata(BaseModel):
    """The two workspace facts we need out of ``cargo metadata``."""

    model_config = ConfigDict(extra="ignore")

    workspace_root: Path
    target_directory: Optional[Path] = None

    @property
    def build_dir(self) -> Path:
        """cargo's target directory; ``<workspace>/target`` if unreported."""
        if self.target_directory is not None:
            return self.target_directory
        return self.workspace_root / "target"


# ── sysroot_receipt.json ─────────────────────────────────────────────────────

class SysrootReceipt(BaseModel):
    """Provenance record for one synthesized sysroot."""

    package_name: str = PACKAGE_NAME
    tool_version: str = __version__
    schema_version: str = SCHEMA_VERSION
    profile_id: str

    host_target: str
    target: str
    nostd_target: str
    source_sysroot: str
    sysroot: str
    rustc_release: str

    files_copied: int = 0
    omitted: List[str] = Field(default_factory=list)

    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
