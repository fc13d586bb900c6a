"""
no_std_check — verify that a crate builds without ``libstd``.

Runs cargo against a synthetic sysroot that omits the standard library,
re-invoking itself as ``RUSTC_WRAPPER`` for every rustc call cargo makes.
"""

__version__ = "0.1.0"
PACKAGE_NAME = "no_std_check"
TOOL_NAME = "cargo-no-std-check"
SUBCOMMAND = "no-std-check"
SCHEMA_VERSION = "0.1"
