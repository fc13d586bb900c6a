"""
Argument list — flag lookup and splicing on a process argument vector.

Flags come in two shapes and both are recognised everywhere:

    --name value     two adjacent elements
    --name=value     one element, split at the first "="

Only the first occurrence of a flag is ever considered.  A missing flag
is not an error: lookups return None and the caller decides whether to
append or ignore.

``ArgList`` is immutable; every edit returns a new list so that the
original vector can still be logged or compared after rewriting.
"""
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Sequence


@dataclass(frozen=True)
class FlagValue:
    """A flag's value and the half-open index range ``[start, stop)`` it occupies."""

    name: str
    value: str
    start: int
    stop: int

    @property
    def joined(self) -> bool:
        """True for the single-element ``--name=value`` form."""
        return self.stop - self.start == 1


class ArgList:
    """Ordered, immutable sequence of argument strings."""

    __slots__ = ("_args",)

    def __init__(self, args: Iterable[str] = ()):
        self._args = tuple(args)

    # ── sequence protocol ────────────────────────────────────────────────

    def __len__(self) -> int:
        return len(self._args)

    def __iter__(self) -> Iterator[str]:
        return iter(self._args)

    def __getitem__(self, index):
        return self._args[index]

    def __eq__(self, other) -> bool:
        if isinstance(other, ArgList):
            return self._args == other._args
        if isinstance(other, (list, tuple)):
            return list(self._args) == list(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._args)

    def __repr__(self) -> str:
        return f"ArgList({list(self._args)!r})"

    def to_list(self) -> List[str]:
        return list(self._args)

    # ── lookup ───────────────────────────────────────────────────────────

    def find(self, name: str) -> Optional[int]:
        """Index of the first bare ``name`` switch, or None."""
        for i, arg in enumerate(self._args):
            if arg == name:
                return i
        return None

    def count(self, name: str) -> int:
        """Occurrences of ``name`` in either form."""
        prefix = name + "="
        return sum(1 for arg in self._args if arg == name or arg.startswith(prefix))

    def get(self, name: str) -> Optional[FlagValue]:
        """
        Value of the first ``name`` flag in either form, or None.

        Scanning stops at the first bare ``name``: if it is the last
        element there is no value and the flag counts as absent.
        """
        prefix = name + "="
        for i, arg in enumerate(self._args):
            if arg == name:
                if i + 1 < len(self._args):
                    return FlagValue(name, self._args[i + 1], i, i + 2)
                return None
            if arg.startswith(prefix):
                return FlagValue(name, arg[len(prefix):], i, i + 1)
        return None

    # ── edits ────────────────────────────────────────────────────────────

    def replace(self, start: int, stop: int, new: Sequence[str] = ()) -> "ArgList":
        """Splice ``[start, stop)`` with *new*; untouched elements keep their order."""
        if not 0 <= start <= stop <= len(self._args):
            raise IndexError(f"range [{start}, {stop}) outside 0..{len(self._args)}")
        return ArgList(self._args[:start] + tuple(new) + self._args[stop:])

    def append(self, *new: str) -> "ArgList":
        return ArgList(self._args + new)

    def set_flag(self, name: str, value: str) -> "ArgList":
        """
        Give ``name`` the value *value*.

        An existing occurrence is rewritten in its own form; otherwise
        ``name value`` is appended.
        """
        found = self.get(name)
        if found is None:
            return self.append(name, value)
        if found.joined:
            return self.replace(found.start, found.stop, [f"{name}={value}"])
        return self.replace(found.start, found.stop, [name, value])
