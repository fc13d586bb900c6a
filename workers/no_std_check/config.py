"""
Tool configuration, read from the process environment.
"""
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

# Produced for descendant processes only
ROLE_ENV = "CARGO_NOSTD_CHECK"
TARGET_ENV = "CARGO_NOSTD_TARGET"
SYSROOT_ENV = "CARGO_NOSTD_SYSROOT"
WRAPPER_ENV = "RUSTC_WRAPPER"


class Settings(BaseSettings):
    """Tool settings"""

    # Toolchain executables
    RUSTC: str = "rustc"
    CARGO: str = "cargo"

    # Driver behaviour
    CARGO_NOSTD_CHECK_VERBOSE: bool = False
    CARGO_NOSTD_CHECK_ACTION: Literal["build", "check"] = "build"
    CARGO_NOSTD_CHECK_TEMP_SYSROOT: bool = False
    CARGO_NOSTD_CHECK_KEEP_SYSROOT: bool = False
    CARGO_NOSTD_CHECK_PROGRESS: bool = True

    # Executable cargo runs as RUSTC_WRAPPER (default: this program)
    CARGO_NOSTD_CHECK_EXE: Optional[str] = None

    model_config = SettingsConfigDict(case_sensitive=True, extra="ignore")


def load_settings() -> Settings:
    """Read settings from the current environment."""
    return Settings()
