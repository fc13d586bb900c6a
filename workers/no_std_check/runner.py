"""
Runner — top-level orchestration of the driver / wrapper protocol.

Driver (no role sentinel in the environment):
  1. Check the rustc channel.
  2. Resolve the real target; put the placeholder target in its place.
  3. Ask cargo where the workspace's target directory is.
  4. Synthesize the no_std sysroot there (or in a private temp dir).
  5. Run ``cargo build`` with this executable as RUSTC_WRAPPER and the
     role sentinel, real target and sysroot in the environment.
  6. Exit with cargo's exit code.

Wrapper (started by cargo once per rustc call):
  1. Rewrite ``--target <placeholder>`` to the real target and add
     ``--sysroot <synthetic sysroot>``.  Invocations without the
     placeholder (build scripts, proc macros, probes) are left alone.
  2. Run the real rustc and exit with its exit code.

The sysroot is fully written before cargo starts, so wrappers never
see a partial tree.  Wrappers share nothing and may run in parallel.
"""
import logging
import os
import shutil
import sys
import tempfile
from pathlib import Path
from typing import Mapping, Optional, Tuple

from no_std_check import TOOL_NAME
from no_std_check.config import (
    ROLE_ENV,
    SYSROOT_ENV,
    TARGET_ENV,
    WRAPPER_ENV,
    Settings,
    load_settings,
)
from no_std_check.core.args import ArgList
from no_std_check.core.role import DriverContext, WrapperContext, resolve_context
from no_std_check.core.sysroot import synthesize
from no_std_check.core.toolchain import Toolchain, exit_code, run_status
from no_std_check.errors import PreconditionError, SysrootError
from no_std_check.io.schema import CargoMetadata, SysrootReceipt
from no_std_check.io.writer import write_receipt, write_target_spec
from no_std_check.policy.profile import Profile

logger = logging.getLogger(__name__)

TARGET_FLAG = "--target"
SYSROOT_FLAG = "--sysroot"
MANIFEST_PATH_FLAG = "--manifest-path"


# ═══════════════════════════════════════════════════════════════════════════════
# Argument rewriting (pure)
# ═══════════════════════════════════════════════════════════════════════════════

def prepare_driver_args(
    args: ArgList,
    host: str,
    profile: Profile,
) -> Tuple[ArgList, str]:
    """
    Swap the real target for the placeholder in cargo's arguments.

    Returns (new_args, real_target).  Without an explicit ``--target``
    the real target is *host* and a placeholder flag is appended.

    Raises PreconditionError for more than one ``--target`` or a
    ``--target`` without a value.
    """
    if args.count(TARGET_FLAG) > 1:
        raise PreconditionError(f"{TARGET_FLAG} given more than once; check one target at a time")
    found = args.get(TARGET_FLAG)
    if found is None and args.find(TARGET_FLAG) is not None:
        raise PreconditionError(f"{TARGET_FLAG} requires a value")
    target = host if found is None else found.value
    return args.set_flag(TARGET_FLAG, profile.placeholder_target), target


def rewrite_wrapper_args(
    args: ArgList,
    target: str,
    sysroot: Path,
    profile: Profile,
) -> Tuple[ArgList, bool]:
    """
    Reverse the placeholder in one rustc invocation.

    Returns (new_args, rewritten).  When the first ``--target`` is not
    the placeholder the arguments are returned unchanged.
    """
    found = args.get(TARGET_FLAG)
    if found is None or found.value != profile.placeholder_target:
        return args, False

    rewritten = args.set_flag(TARGET_FLAG, target)
    return rewritten.append(SYSROOT_FLAG, str(sysroot)), True


# ═══════════════════════════════════════════════════════════════════════════════
# Driver
# ═══════════════════════════════════════════════════════════════════════════════

def current_executable(settings: Settings) -> str:
    """
    Path cargo should run as RUSTC_WRAPPER.

    ``CARGO_NOSTD_CHECK_EXE`` wins; then ``sys.argv[0]`` when it is an
    executable script (the console entry point); then the installed
    ``cargo-no-std-check`` on PATH.
    """
    if settings.CARGO_NOSTD_CHECK_EXE:
        return settings.CARGO_NOSTD_CHECK_EXE

    argv0 = Path(sys.argv[0]) if sys.argv and sys.argv[0] else None
    if (
        argv0 is not None
        and argv0.suffix != ".py"
        and argv0.is_file()
        and os.access(argv0, os.X_OK)
    ):
        return str(argv0.resolve())

    found = shutil.which(TOOL_NAME)
    if found:
        return found
    raise PreconditionError(
        f"cannot locate the {TOOL_NAME} executable; set CARGO_NOSTD_CHECK_EXE"
    )


def sysroot_location(cargo_meta: CargoMetadata, settings: Settings, profile: Profile) -> Path:
    if settings.CARGO_NOSTD_CHECK_TEMP_SYSROOT:
        return Path(tempfile.mkdtemp(prefix=f"{profile.sysroot_dir_name}-"))
    return cargo_meta.build_dir / profile.sysroot_dir_name


def _remove_tree(path: Path) -> None:
    if not path.exists():
        return
    try:
        shutil.rmtree(path)
    except OSError as e:
        raise SysrootError(f"failed to remove stale sysroot {path}: {e}") from e


def run_driver(
    ctx: DriverContext,
    settings: Settings,
    toolchain: Toolchain,
    profile: Profile,
) -> int:
    """Prepare the sysroot and run cargo; returns cargo's exit code."""
    # ── Step 1: channel ──────────────────────────────────────────────
    rustc_meta = toolchain.version_meta()
    if rustc_meta.channel.value not in profile.supported_channels:
        raise PreconditionError(f"{rustc_meta.channel.value} channel not supported")
    wrapper = current_executable(settings)

    # ── Step 2: target ───────────────────────────────────────────────
    cargo_args, target = prepare_driver_args(ctx.args, rustc_meta.host, profile)
    nostd_target = profile.nostd_target(target)

    # ── Step 3: workspace ────────────────────────────────────────────
    manifest = ctx.args.get(MANIFEST_PATH_FLAG)
    cargo_meta = toolchain.cargo_metadata(manifest.value if manifest else None)
    sysroot = sysroot_location(cargo_meta, settings, profile)
    temporary = settings.CARGO_NOSTD_CHECK_TEMP_SYSROOT

    try:
        # ── Step 4: sysroot ──────────────────────────────────────────
        if not temporary:
            _remove_tree(sysroot)

        source_sysroot = toolchain.print_sysroot()
        logger.info("Creating #![no_std] sysroot for %s", target)
        plan = synthesize(
            target,
            source_sysroot,
            sysroot,
            profile=profile,
            host=rustc_meta.host,
            progress=settings.CARGO_NOSTD_CHECK_PROGRESS,
        )

        spec_json = toolchain.target_spec_json(None if target == rustc_meta.host else target)
        write_target_spec(sysroot, nostd_target, spec_json)
        write_receipt(
            SysrootReceipt(
                profile_id=profile.profile_id,
                host_target=rustc_meta.host,
                target=target,
                nostd_target=nostd_target,
                source_sysroot=str(source_sysroot),
                sysroot=str(sysroot),
                rustc_release=rustc_meta.release,
                files_copied=len(plan.entries),
                omitted=[str(p.relative_to(source_sysroot)) for p in plan.omitted],
            ),
            sysroot,
        )
        logger.info("Target %s (sysroot: %s)", nostd_target, sysroot)

        # ── Step 5: cargo ────────────────────────────────────────────
        cmd = toolchain.cargo_command(settings.CARGO_NOSTD_CHECK_ACTION, *cargo_args)
        env = {
            WRAPPER_ENV: wrapper,
            ROLE_ENV: "1",
            TARGET_ENV: target,
            SYSROOT_ENV: str(sysroot),
        }
        logger.info("Running: %s", " ".join(cmd))
        status = run_status(cmd, env=env)
    finally:
        if temporary and not settings.CARGO_NOSTD_CHECK_KEEP_SYSROOT:
            shutil.rmtree(sysroot, ignore_errors=True)

    # ── Step 6: exit code ────────────────────────────────────────────
    return exit_code(status, toolchain.cargo)


# ═══════════════════════════════════════════════════════════════════════════════
# Wrapper
# ═══════════════════════════════════════════════════════════════════════════════

def run_wrapper(ctx: WrapperContext, profile: Profile) -> int:
    """Run the real rustc for one cargo invocation; returns rustc's exit code."""
    args, rewritten = rewrite_wrapper_args(ctx.args, ctx.target, ctx.sysroot, profile)
    if rewritten:
        logger.debug("rustc (no_std sysroot): %s", " ".join(args))
    else:
        logger.debug("rustc (passthrough): %s", " ".join(args))

    status = run_status(args.to_list())
    return exit_code(status, ctx.compiler)


# ═══════════════════════════════════════════════════════════════════════════════
# Main entry point
# ═══════════════════════════════════════════════════════════════════════════════

def run(
    args,
    environ: Optional[Mapping[str, str]] = None,
    settings: Optional[Settings] = None,
    profile: Optional[Profile] = None,
) -> int:
    """
    Play whichever role the environment selects; returns the exit code.

    Fatal conditions raise ``NoStdCheckError`` subclasses.
    """
    if environ is None:
        environ = os.environ
    if settings is None:
        settings = load_settings()
    if profile is None:
        profile = Profile.v0()

    ctx = resolve_context(args, environ)
    if isinstance(ctx, WrapperContext):
        return run_wrapper(ctx, profile)
    return run_driver(ctx, settings, Toolchain.from_settings(settings), profile)
