"""
Role — which half of the protocol this process plays.

Decided once at entry from the environment and never changed:

  - DRIVER:  started by the user (or by ``cargo no-std-check``).
  - WRAPPER: started by cargo as ``RUSTC_WRAPPER``; the driver put the
             role sentinel, the real target and the sysroot path in the
             environment of every descendant.

Each role gets its own context value carrying exactly the data it needs.
"""
from dataclasses import dataclass
from enum import Enum, unique
from pathlib import Path
from typing import Mapping, Union

from no_std_check.config import ROLE_ENV, SYSROOT_ENV, TARGET_ENV
from no_std_check.core.args import ArgList
from no_std_check.errors import PreconditionError


@unique
class Role(str, Enum):
    DRIVER = "driver"
    WRAPPER = "wrapper"


@dataclass(frozen=True)
class DriverContext:
    """Arguments forwarded to cargo."""
    args: ArgList

    role = Role.DRIVER


@dataclass(frozen=True)
class WrapperContext:
    """A rustc invocation plus the facts the driver handed down."""
    args: ArgList
    target: str
    sysroot: Path

    role = Role.WRAPPER

    @property
    def compiler(self) -> str:
        return self.args[0]


Context = Union[DriverContext, WrapperContext]


def detect_role(environ: Mapping[str, str]) -> Role:
    return Role.WRAPPER if ROLE_ENV in environ else Role.DRIVER


def resolve_context(args, environ: Mapping[str, str]) -> Context:
    """
    Build the context for this process.

    In the wrapper role an empty argument vector or a missing target /
    sysroot variable raises PreconditionError: cargo always passes the
    compiler path and the driver always sets both variables.
    """
    args = ArgList(args)
    if detect_role(environ) is Role.DRIVER:
        return DriverContext(args=args)

    if len(args) == 0:
        raise PreconditionError("expected rustc argument")

    target = environ.get(TARGET_ENV)
    if not target:
        raise PreconditionError(f"{TARGET_ENV} is not set in the wrapper environment")
    sysroot = environ.get(SYSROOT_ENV)
    if not sysroot:
        raise PreconditionError(f"{SYSROOT_ENV} is not set in the wrapper environment")

    return WrapperContext(args=args, target=target, sysroot=Path(sysroot))
