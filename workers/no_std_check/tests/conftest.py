"""
Shared pytest fixtures for no_std_check tests.

Most tests run against a fake toolchain built in ``tmp_path``:

  - a sysroot tree laid out like ``rustc --print sysroot``;
  - a fake ``rustc`` answering -vV / --print queries and, for compile
    calls, failing with "can't find crate for `std`" when
    FAKE_NEEDS_STD is 1 (every crate) or the crate's name and the
    --sysroot it was given has no libstd;
  - a fake ``cargo`` answering ``metadata`` and, for build/check,
    invoking $RUSTC_WRAPPER once for a host build script, then for a
    dependency ``dep`` and the library ``demo`` with the --target it was
    given.

Every fake tool appends ``{"tool": ..., "args": [...]}`` lines to
FAKE_TOOL_LOG so tests can inspect what was run.

The fakes are Python scripts with a shebang, so these tests are skipped
on Windows.
"""
import json
import os
import platform
import stat
import sys
import textwrap
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List

import pytest

from no_std_check.config import ROLE_ENV, SYSROOT_ENV, TARGET_ENV, Settings

HOST = "x86_64-unknown-linux-gnu"
CROSS = "thumbv7em-none-eabi"

WORKERS_DIR = Path(__file__).resolve().parents[2]

# Files under lib/rustlib/<triple>/ for the host toolchain.
HOST_TREE = {
    "bin/rust-lld": "#lld",
    "bin/gcc-ld/ld.lld": "#ld.lld",
    "lib/libcore-1a2b3c.rlib": "core",
    "lib/liballoc-1a2b3c.rlib": "alloc",
    "lib/libcompiler_builtins-1a2b3c.rlib": "builtins",
    "lib/libstd-1a2b3c.rlib": "std",
    "lib/libstd-1a2b3c.so": "std-dylib",
    "lib/libstd_detect-1a2b3c.rlib": "std_detect",
    "lib/libtest-1a2b3c.rlib": "test",
    "lib/self-contained/crt1.o": "crt1",
}

# A bare-metal target ships no bin/ and no libstd.
CROSS_TREE = {
    "lib/libcore-4d5e6f.rlib": "core",
    "lib/liballoc-4d5e6f.rlib": "alloc",
    "lib/libcompiler_builtins-4d5e6f.rlib": "builtins",
}


FAKE_RUSTC = textwrap.dedent("""\
    #!{python}
    import json, os, sys

    HOST = {host!r}
    args = sys.argv[1:]

    log = os.environ.get("FAKE_TOOL_LOG")
    if log:
        with open(log, "a") as f:
            f.write(json.dumps({{"tool": "rustc", "args": args}}) + "\\n")

    def flag(name):
        for i, arg in enumerate(args):
            if arg == name and i + 1 < len(args):
                return args[i + 1]
            if arg.startswith(name + "="):
                return arg[len(name) + 1:]
        return None

    if args == ["-vV"]:
        release = os.environ.get("FAKE_RUSTC_RELEASE", "1.80.0-nightly")
        print("rustc " + release + " (0123abcd 2024-05-01)")
        print("binary: rustc")
        print("commit-hash: 0123abcd")
        print("host: " + HOST)
        print("release: " + release)
        print("LLVM version: 18.1.4")
        sys.exit(0)

    if args[:2] == ["--print", "sysroot"]:
        print(os.environ["FAKE_SYSROOT"])
        sys.exit(0)

    if "target-spec-json" in args:
        print(json.dumps({{"llvm-target": flag("--target") or HOST}}))
        sys.exit(0)

    sysroot = flag("--sysroot")
    needs_std = os.environ.get("FAKE_NEEDS_STD")
    if sysroot is not None and needs_std is not None and needs_std in ("1", flag("--crate-name")):
        libdir = os.path.join(sysroot, "lib", "rustlib", flag("--target") or HOST, "lib")
        names = os.listdir(libdir) if os.path.isdir(libdir) else []
        if not any(n.split("-")[0].split(".")[0] == "libstd" for n in names):
            sys.stderr.write("error[E0463]: can't find crate for `std`\\n")
            sys.exit(101)

    sys.exit(int(os.environ.get("FAKE_RUSTC_EXIT", "0")))
""")


FAKE_CARGO = textwrap.dedent("""\
    #!{python}
    import json, os, subprocess, sys

    args = sys.argv[1:]

    log = os.environ.get("FAKE_TOOL_LOG")
    if log:
        with open(log, "a") as f:
            f.write(json.dumps({{"tool": "cargo", "args": args}}) + "\\n")

    def flag(name):
        for i, arg in enumerate(args):
            if arg == name and i + 1 < len(args):
                return args[i + 1]
            if arg.startswith(name + "="):
                return arg[len(name) + 1:]
        return None

    if args[:1] == ["metadata"]:
        root = os.environ["FAKE_WORKSPACE"]
        manifest = flag("--manifest-path")
        if manifest is not None:
            root = os.path.dirname(os.path.abspath(manifest))
        print(json.dumps({{
            "packages": [],
            "workspace_members": [],
            "workspace_root": root,
            "target_directory": os.path.join(root, "target"),
            "version": 1,
        }}))
        sys.exit(0)

    if args[:1] in (["build"], ["check"]):
        rustc = os.environ.get("RUSTC", "rustc")
        wrapper = os.environ.get("RUSTC_WRAPPER")
        prefix = [wrapper, rustc] if wrapper else [rustc]
        calls = [prefix + ["--crate-name", "build_script_build", "build.rs"]]
        target = flag("--target")
        if target is not None:
            calls.append(prefix + ["--crate-name", "dep", "dep/src/lib.rs", "--target", target])
            calls.append(prefix + ["--crate-name", "demo", "src/lib.rs", "--target", target])
        for call in calls:
            code = subprocess.call(call)
            if code != 0:
                sys.exit(code)
        sys.exit(0)

    sys.exit(2)
""")


WRAPPER_SCRIPT = textwrap.dedent("""\
    #!/bin/sh
    exec "{python}" -m no_std_check "$@"
""")


def make_tree(root: Path, files: Dict[str, str]) -> Path:
    """Create *files* (relative path → content) under *root*."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


def _write_executable(path: Path, content: str) -> Path:
    path.write_text(content)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@dataclass
class FakeTools:
    rustc: Path
    cargo: Path
    wrapper: Path
    sysroot: Path
    workspace: Path
    log: Path

    def calls(self, tool: str) -> List[List[str]]:
        """Argument lists of every recorded invocation of *tool*."""
        if not self.log.exists():
            return []
        records = [json.loads(line) for line in self.log.read_text().splitlines()]
        return [r["args"] for r in records if r["tool"] == tool]

    def settings(self, **overrides) -> Settings:
        values = dict(
            RUSTC=str(self.rustc),
            CARGO=str(self.cargo),
            CARGO_NOSTD_CHECK_PROGRESS=False,
            CARGO_NOSTD_CHECK_EXE=str(self.wrapper),
        )
        values.update(overrides)
        return Settings(**values)


# ── Fixtures ─────────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def _clean_role_env(monkeypatch):
    """Tests start in the driver role regardless of the outer environment."""
    for name in (ROLE_ENV, TARGET_ENV, SYSROOT_ENV, "RUSTC_WRAPPER"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def posix_only():
    if platform.system() == "Windows":
        pytest.skip("fake toolchain scripts need a POSIX shebang")


@pytest.fixture
def fake_sysroot(tmp_path) -> Path:
    """A toolchain root with a host tree and an installed bare-metal target."""
    root = tmp_path / "toolchain"
    make_tree(root / "lib" / "rustlib" / HOST, HOST_TREE)
    make_tree(root / "lib" / "rustlib" / CROSS, CROSS_TREE)
    (root / "bin").mkdir(parents=True)
    return root


@pytest.fixture
def fake_tools(tmp_path, fake_sysroot, monkeypatch, posix_only) -> FakeTools:
    """Fake rustc / cargo / wrapper executables wired into the environment."""
    bindir = tmp_path / "bin"
    bindir.mkdir()
    python = sys.executable

    rustc = _write_executable(bindir / "rustc", FAKE_RUSTC.format(python=python, host=HOST))
    cargo = _write_executable(bindir / "cargo", FAKE_CARGO.format(python=python))
    wrapper = _write_executable(bindir / "cargo-no-std-check", WRAPPER_SCRIPT.format(python=python))

    workspace = tmp_path / "workspace"
    (workspace / "src").mkdir(parents=True)
    (workspace / "Cargo.toml").write_text('[package]\nname = "demo"\nversion = "0.1.0"\n')
    (workspace / "src" / "lib.rs").write_text("#![no_std]\n")

    log = tmp_path / "tools.jsonl"

    pythonpath = os.environ.get("PYTHONPATH")
    monkeypatch.setenv(
        "PYTHONPATH",
        str(WORKERS_DIR) if not pythonpath else os.pathsep.join([str(WORKERS_DIR), pythonpath]),
    )
    monkeypatch.setenv("RUSTC", str(rustc))
    monkeypatch.setenv("CARGO", str(cargo))
    monkeypatch.setenv("FAKE_SYSROOT", str(fake_sysroot))
    monkeypatch.setenv("FAKE_WORKSPACE", str(workspace))
    monkeypatch.setenv("FAKE_TOOL_LOG", str(log))
    monkeypatch.delenv("FAKE_NEEDS_STD", raising=False)
    monkeypatch.delenv("FAKE_RUSTC_RELEASE", raising=False)
    monkeypatch.delenv("FAKE_RUSTC_EXIT", raising=False)

    return FakeTools(
        rustc=rustc,
        cargo=cargo,
        wrapper=wrapper,
        sysroot=fake_sysroot,
        workspace=workspace,
        log=log,
    )
