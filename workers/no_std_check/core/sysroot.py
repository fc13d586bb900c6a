"""
Sysroot synthesizer — filtered copy of the toolchain's per-target tree.

Given ``<source>/lib/rustlib/<target>/{bin,lib}`` the synthesizer produces
``<dest>/lib/rustlib/<target>/{bin,lib}`` where:

  - every regular file under ``bin`` is copied unfiltered;
  - every regular file under ``lib`` is copied *except* those whose
    library name is the runtime library (``libstd``).

The library name of a file is its name up to the first "-" or ".",
so ``libstd-8f2a.rlib`` and ``libstd.so`` are both ``libstd`` while
``libstd_detect-1c.rlib`` is not.

When the target differs from the host, the host's own tree is mirrored
unfiltered next to it so host-side tooling keeps working.

Copying is planned first and then executed; any I/O failure aborts the
whole operation.  Files already copied are left in place.
"""
import logging
import os
import re
import shutil
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Optional

from tqdm import tqdm

from no_std_check.errors import SysrootError
from no_std_check.policy.profile import Profile

logger = logging.getLogger(__name__)

_NAME_SEP = re.compile(r"[-.]")


@dataclass(frozen=True)
class CopyEntry:
    src: Path
    dst: Path


@dataclass
class SysrootPlan:
    """Every copy to perform, plus the source files deliberately left out."""

    dest_root: Path
    entries: List[CopyEntry] = field(default_factory=list)
    omitted: List[Path] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)


def library_name(filename: str) -> str:
    """``libstd-8f2a.rlib`` → ``libstd``."""
    return _NAME_SEP.split(filename, maxsplit=1)[0]


def iter_files(root: Path) -> Iterator[Path]:
    """Regular files under *root*, sorted, symlinks skipped; nothing if *root* is missing."""
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for name in sorted(filenames):
            path = Path(dirpath) / name
            if not path.is_symlink() and path.is_file():
                yield path


def _add_tree(
    plan: SysrootPlan,
    src: Path,
    dst: Path,
    exclude_lib: Optional[str] = None,
) -> None:
    for path in iter_files(src):
        if exclude_lib is not None and library_name(path.name) == exclude_lib:
            plan.omitted.append(path)
            continue
        plan.entries.append(CopyEntry(path, dst / path.relative_to(src)))


def plan_sysroot(
    target: str,
    source_root: Path,
    dest_root: Path,
    profile: Optional[Profile] = None,
    host: Optional[str] = None,
) -> SysrootPlan:
    """
    Enumerate the copies for *target*; no filesystem writes.

    Raises SysrootError if *target* is not installed under *source_root*.
    """
    if profile is None:
        profile = Profile.v0()

    src_root = profile.target_root(Path(source_root), target)
    if not src_root.is_dir():
        raise SysrootError(f"target {target} is not installed in {source_root}")

    plan = SysrootPlan(dest_root=Path(dest_root))
    dst_root = profile.target_root(plan.dest_root, target)

    _add_tree(plan, src_root / profile.bin_dir, dst_root / profile.bin_dir)
    _add_tree(
        plan,
        src_root / profile.lib_dir,
        dst_root / profile.lib_dir,
        exclude_lib=profile.runtime_lib,
    )

    if host is not None and host != target:
        src_host = profile.target_root(Path(source_root), host)
        dst_host = profile.target_root(plan.dest_root, host)
        _add_tree(plan, src_host / profile.bin_dir, dst_host / profile.bin_dir)
        _add_tree(plan, src_host / profile.lib_dir, dst_host / profile.lib_dir)

    return plan


def execute_plan(plan: SysrootPlan, progress: bool = False) -> None:
    """Perform every copy in *plan*, creating parent directories on demand."""
    with tqdm(
        total=len(plan.entries),
        desc="Copying",
        unit="file",
        file=sys.stderr,
        leave=False,
        disable=not progress,
    ) as pbar:
        for entry in plan.entries:
            pbar.set_postfix_str(str(entry.dst.relative_to(plan.dest_root)), refresh=False)
            try:
                entry.dst.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(entry.src, entry.dst)
            except OSError as e:
                raise SysrootError(f"failed to copy {entry.src} to {entry.dst}: {e}") from e
            pbar.update(1)


def synthesize(
    target: str,
    source_root: Path,
    dest_root: Path,
    profile: Optional[Profile] = None,
    host: Optional[str] = None,
    progress: bool = False,
) -> SysrootPlan:
    """Build the filtered sysroot for *target* under *dest_root*; returns the executed plan."""
    plan = plan_sysroot(target, source_root, dest_root, profile=profile, host=host)
    logger.debug(
        "Sysroot plan for %s: %d files to copy, %d omitted",
        target, len(plan.entries), len(plan.omitted),
    )
    execute_plan(plan, progress=progress)
    return plan
