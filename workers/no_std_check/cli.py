"""
CLI entry point for cargo-no-std-check.

    cargo no-std-check [--target=<triple>] [cargo build flags...]
    cargo-no-std-check [--target=<triple>] [cargo build flags...]

The role is decided before any parsing: as RUSTC_WRAPPER the arguments
belong to rustc and are never interpreted here.  As driver only
``-h/--help`` and ``--version`` are handled; everything else is passed
to cargo untouched.
"""
import argparse
import logging
import os
import sys
from typing import List, Optional

from pydantic import ValidationError

from no_std_check import SUBCOMMAND, TOOL_NAME, __version__
from no_std_check.config import load_settings
from no_std_check.core.args import ArgList
from no_std_check.core.role import Role, detect_role
from no_std_check.errors import NoStdCheckError
from no_std_check.runner import run

logger = logging.getLogger(__name__)

SHORT_CIRCUIT_FLAGS = ("-h", "--help", "--version")

# 128 + SIGINT, as shells report it
INTERRUPTED_EXIT = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=TOOL_NAME,
        description="Check that a crate builds without libstd by building it "
                    "against a synthetic sysroot that omits the standard library.",
        epilog="Unrecognised arguments are passed to `cargo build`. "
               "Environment: RUSTC, CARGO, CARGO_NOSTD_CHECK_VERBOSE, "
               "CARGO_NOSTD_CHECK_ACTION, CARGO_NOSTD_CHECK_TEMP_SYSROOT, "
               "CARGO_NOSTD_CHECK_KEEP_SYSROOT, CARGO_NOSTD_CHECK_PROGRESS.",
        allow_abbrev=False,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"{TOOL_NAME} {__version__}",
    )
    parser.add_argument(
        "--target",
        metavar="TRIPLE",
        help="Target triple to check (default: the rustc host)",
    )
    parser.add_argument(
        "--manifest-path",
        metavar="PATH",
        help="Path to Cargo.toml",
    )
    return parser


def strip_subcommand(argv: List[str]) -> List[str]:
    """Drop the ``no-std-check`` token cargo passes to external subcommands."""
    if argv and argv[0] == SUBCOMMAND:
        return argv[1:]
    return argv


def wants_short_circuit(argv: List[str]) -> bool:
    """True if help or version is requested before any ``--`` separator."""
    head = ArgList(argv)
    sep = head.find("--")
    if sep is not None:
        head = head.replace(sep, len(head))
    return any(head.find(flag) is not None for flag in SHORT_CIRCUIT_FLAGS)


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entry point; always ends in ``sys.exit``."""
    if argv is None:
        argv = sys.argv[1:]

    try:
        settings = load_settings()
    except ValidationError as e:
        print(f"error: invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if settings.CARGO_NOSTD_CHECK_VERBOSE else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if detect_role(os.environ) is Role.DRIVER:
        argv = strip_subcommand(argv)
        if wants_short_circuit(argv):
            sep = ArgList(argv).find("--")
            # Exits 0 after printing help or version
            build_parser().parse_known_args(argv if sep is None else argv[:sep])

    try:
        code = run(argv, os.environ, settings)
    except NoStdCheckError as e:
        logger.debug("Fatal error", exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("error: interrupted", file=sys.stderr)
        sys.exit(INTERRUPTED_EXIT)

    sys.exit(code)


if __name__ == "__main__":
    main()
