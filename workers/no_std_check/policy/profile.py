"""
Profile — names and conventions of the toolchain being checked.

The profile holds every rustc / cargo specific constant so that the
synthesizer and the controller contain no opinions.  Supporting another
layout or another runtime library name is a profile change, not a code
change.
"""
from dataclasses import dataclass
from typing import FrozenSet


@dataclass(frozen=True)
class Profile:
    """Describes the toolchain layout and the protocol constants."""

    # Identity
    profile_id: str

    # Toolchain layout: <sysroot>/<rustlib_dir>/<triple>/{bin,lib}
    rustlib_dir: str
    bin_dir: str
    lib_dir: str

    # Library whose absence makes no_std violations fail
    runtime_lib: str

    # Target substituted by the driver and reversed by the wrapper
    placeholder_target: str
    nostd_target_suffix: str

    # Where the synthetic sysroot goes inside cargo's target directory
    sysroot_dir_name: str

    # Channels exposing the unstable options we rely on
    supported_channels: FrozenSet[str]

    def nostd_target(self, host: str) -> str:
        return f"{host}{self.nostd_target_suffix}"

    def target_root(self, sysroot, triple: str):
        """``<sysroot>/lib/rustlib/<triple>`` for a Path-like *sysroot*."""
        return sysroot.joinpath(*self.rustlib_dir.split("/"), triple)

    @classmethod
    def v0(cls) -> "Profile":
        """The rustup-style layout used by every current rustc release."""
        return cls(
            profile_id="rustc-nightly-rustlib",
            rustlib_dir="lib/rustlib",
            bin_dir="bin",
            lib_dir="lib",
            runtime_lib="libstd",
            placeholder_target="no_std-fake-target",
            nostd_target_suffix="-nostd",
            sysroot_dir_name="nostd_sysroot",
            supported_channels=frozenset({"nightly", "dev"}),
        )
