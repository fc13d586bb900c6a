"""
Writer — serialize sysroot side files.

Filesystem layout per synthetic sysroot:
    <sysroot>/<nostd-target>.json
    <sysroot>/sysroot_receipt.json

Any I/O failure is raised as SysrootError.
"""
import json
from pathlib import Path

from no_std_check.errors import SysrootError
from no_std_check.io.schema import SysrootReceipt

RECEIPT_NAME = "sysroot_receipt.json"


def _write(path: Path, text: str) -> Path:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)
    except OSError as e:
        raise SysrootError(f"failed to write {path}: {e}") from e
    return path


def write_target_spec(sysroot: Path, nostd_target: str, spec_json: str) -> Path:
    """Write the compiler's target-spec JSON as ``<nostd_target>.json``."""
    return _write(sysroot / f"{nostd_target}.json", spec_json)


def write_receipt(receipt: SysrootReceipt, sysroot: Path) -> Path:
    """
    Write sysroot_receipt.json into *sysroot*.

    Creates *sysroot* if it does not exist.
    Returns the receipt path.
    """
    return _write(
        sysroot / RECEIPT_NAME,
        json.dumps(
            receipt.model_dump(mode="json"),
            indent=2,
            sort_keys=True,
        )
        + "\n",
    )
