"""
Toolchain invoker — run rustc and cargo as opaque external processes.

Two ways of running a child:
  - ``capture_stdout``: stdout piped and returned, stderr inherited.
    Used for queries (version, sysroot, metadata).  Failure is fatal.
  - ``run_status``: all three streams inherited.  Used for the real
    build and the real compiler.  The outcome is an ``ExitStatus``.

No timeouts and no retries: every call blocks until the child exits.
"""
import json
import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from no_std_check.errors import ChildSignaled, ToolchainError
from no_std_check.io.schema import CargoMetadata, RustcVersionMeta

logger = logging.getLogger(__name__)


# ── Exit status ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Exited:
    """The child exited normally with *code*."""
    code: int

    @property
    def success(self) -> bool:
        return self.code == 0


@dataclass(frozen=True)
class Signaled:
    """The child was killed by *signal*; there is no exit code."""
    signal: int

    @property
    def success(self) -> bool:
        return False


ExitStatus = Union[Exited, Signaled]


def exit_status(returncode: int) -> ExitStatus:
    """Map a ``subprocess`` return code (negative on signal) to an ExitStatus."""
    if returncode < 0:
        return Signaled(-returncode)
    return Exited(returncode)


def exit_code(status: ExitStatus, program: str) -> int:
    """The code to exit with after *status*; a signal raises ChildSignaled."""
    if isinstance(status, Signaled):
        raise ChildSignaled(program, status.signal)
    return status.code


# ── Process helpers ──────────────────────────────────────────────────────────

def capture_stdout(cmd: Sequence[str]) -> str:
    """Run *cmd*, return its stdout as text; raise ToolchainError on failure."""
    logger.debug("Running: %s", " ".join(cmd))
    try:
        result = subprocess.run(
            list(cmd),
            stdout=subprocess.PIPE,
            text=True,
        )
    except OSError as e:
        raise ToolchainError(f"failed to run {cmd[0]}: {e}") from e

    if result.returncode != 0:
        raise ToolchainError(
            f"`{' '.join(cmd)}` failed ({_describe(exit_status(result.returncode))})"
        )
    return result.stdout


def run_status(
    cmd: Sequence[str],
    env: Optional[Mapping[str, str]] = None,
    cwd: Optional[Path] = None,
) -> ExitStatus:
    """
    Run *cmd* with inherited standard streams and wait for it.

    *env* entries are added on top of the current environment.  Inheritable
    descriptors stay open in the child so cargo's jobserver pipes reach
    rustc.
    """
    child_env: Optional[Dict[str, str]] = None
    if env:
        child_env = dict(os.environ)
        child_env.update(env)

    logger.debug("Running: %s", " ".join(cmd))
    try:
        result = subprocess.run(list(cmd), env=child_env, cwd=cwd, close_fds=False)
    except OSError as e:
        raise ToolchainError(f"failed to run {cmd[0]}: {e}") from e
    return exit_status(result.returncode)


def _describe(status: ExitStatus) -> str:
    if isinstance(status, Signaled):
        return f"signal {status.signal}"
    return f"exit code {status.code}"


# ── rustc / cargo ────────────────────────────────────────────────────────────

class Toolchain:
    """The rustc and cargo executables in use, with the queries we need."""

    def __init__(self, rustc: str = "rustc", cargo: str = "cargo"):
        self.rustc = rustc
        self.cargo = cargo

    @classmethod
    def from_settings(cls, settings) -> "Toolchain":
        return cls(rustc=settings.RUSTC, cargo=settings.CARGO)

    def rustc_command(self, *args: str) -> List[str]:
        return [self.rustc, *args]

    def cargo_command(self, *args: str) -> List[str]:
        return [self.cargo, *args]

    def version_meta(self) -> RustcVersionMeta:
        """Parsed ``rustc -vV``."""
        out = capture_stdout(self.rustc_command("-vV"))
        try:
            return RustcVersionMeta.parse(out)
        except ValueError as e:
            raise ToolchainError(f"unexpected `rustc -vV` output: {e}") from e

    def print_sysroot(self) -> Path:
        """The installed toolchain root, ``rustc --print sysroot``."""
        out = capture_stdout(self.rustc_command("--print", "sysroot")).rstrip()
        if not out:
            raise ToolchainError("failed to get sysroot")
        return Path(out)

    def target_spec_json(self, target: Optional[str] = None) -> str:
        """Target spec JSON for *target* (the host when None); nightly only."""
        cmd = self.rustc_command("-Z", "unstable-options", "--print", "target-spec-json")
        if target is not None:
            cmd += ["--target", target]
        return capture_stdout(cmd)

    def cargo_metadata(self, manifest_path: Optional[str] = None) -> CargoMetadata:
        """Workspace facts from ``cargo metadata``."""
        cmd = self.cargo_command("metadata", "--format-version", "1", "--no-deps")
        if manifest_path is not None:
            cmd += ["--manifest-path", manifest_path]
        out = capture_stdout(cmd)
        try:
            return CargoMetadata.model_validate(json.loads(out))
        except (json.JSONDecodeError, ValidationError) as e:
            raise ToolchainError(f"unexpected `cargo metadata` output: {e}") from e
