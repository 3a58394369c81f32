"""
Environment overlay construction for child processes.

Rules:
- The child starts from a snapshot of the caller's environment
- Overlay values override inherited values; last write for a key wins
- Identification variables are never overwritten: a new value is appended to
  any existing value (overlay first, then inherited) using their delimiter
- Empty strings count as present
"""

import os
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional


class EnvironmentOverlay:
    """
    Mapping of variable name to value merged into a child's environment.

    Keys are case-sensitive. Callers' mappings are copied, never mutated.
    """

    def __init__(
        self,
        base: Optional[Mapping[str, str]] = None,
        append_delimiters: Optional[Mapping[str, str]] = None,
        inherited: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize overlay.

        Args:
            base: Initial variables (e.g. credentials), applied with set()
            append_delimiters: Identification variable names mapped to the
                delimiter used when appending
            inherited: Environment the child inherits (default: os.environ snapshot)
        """
        self._values: Dict[str, str] = {}
        self._append_delimiters: Dict[str, str] = dict(append_delimiters or {})
        self._inherited: Dict[str, str] = dict(os.environ if inherited is None else inherited)
        if base:
            self.update(base)

    def set(self, name: str, value: str) -> None:
        """Set a variable; identification variables are appended instead."""
        if name in self._append_delimiters:
            self.set_or_append(name, value, self._append_delimiters[name])
            return
        self._values[name] = value

    def set_or_append(self, name: str, value: str, delimiter: str) -> None:
        """Append value to the existing value of name, or set it if absent."""
        if name in self._values:
            prior: Optional[str] = self._values[name]
        else:
            prior = self._inherited.get(name)

        if prior is None:
            self._values[name] = value
        else:
            self._values[name] = f"{prior}{delimiter}{value}"

    def update(self, values: Mapping[str, str]) -> None:
        for name, value in dict(values).items():
            self.set(name, value)

    def get(self, name: str) -> Optional[str]:
        return self._values.get(name)

    def to_dict(self) -> Dict[str, str]:
        """Overlay values only (what gets recorded on an invocation spec)."""
        return dict(self._values)

    @property
    def inherited(self) -> Mapping[str, str]:
        """Snapshot of the environment the child inherits."""
        return MappingProxyType(self._inherited)

    def child_env(self) -> Dict[str, str]:
        """Full environment for the child: inherited snapshot plus overlay."""
        env = dict(self._inherited)
        env.update(self._values)
        return env

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)
