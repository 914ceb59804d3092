#!/usr/bin/env python3
"""
Argument plans for external command lines.

An ArgumentPlan is an ordered list of flags with optional values. Default
flags are added with default_arg (first writer wins) and forced with
replace_arg (ensure present, then overwrite), so several call sites can
contribute to one command line without checking what the others did.
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional


@dataclass
class Argument:
    """A single flag and its optional value."""
    name: str
    value: Optional[str] = None

    def tokens(self) -> List[str]:
        # An empty value means the flag is emitted on its own
        if self.value:
            return [self.name, self.value]
        return [self.name]


def _is_flag(token: str) -> bool:
    return token.startswith("-") and token != "-"


class ArgumentPlan:
    """
    Ordered sequence of arguments for one process invocation.

    A plan is created empty per command, filled in place, rendered once when
    the process is spawned and then discarded.
    """

    def __init__(self, arguments: Optional[Iterable[Argument]] = None):
        self._arguments: List[Argument] = list(arguments or [])

    @classmethod
    def from_tokens(cls, tokens: Iterable[str]) -> "ArgumentPlan":
        plan = cls()
        plan.extend_tokens(tokens)
        return plan

    def default_arg(self, name: str, value: Optional[str] = None) -> None:
        """
        Append (name, value) unless an entry called name already exists.

        Args:
            name: Flag string, e.g. "--threads"
            value: Optional value; None or "" makes a flag-only entry
        """
        if name in self:
            return
        self._arguments.append(Argument(name, value))

    def replace_arg(self, name: str, value: Optional[str] = None) -> None:
        """
        Ensure name is present, then set the value of every entry called name.

        When name is absent this adds exactly one entry, the same as
        default_arg.
        """
        self.default_arg(name, value)
        for argument in self._arguments:
            if argument.name == name:
                argument.value = value

    def extend_tokens(self, tokens: Iterable[str]) -> None:
        """
        Apply user supplied tokens on top of the plan.

        Each flag token, together with a following non-flag token as its
        value, goes through replace_arg. A `--flag=value` token is split at
        the first "=". Flags already in the plan are updated in place and
        new ones are appended in order. A stray value with no preceding flag
        is kept as a flag-only entry.
        """
        pending: Optional[str] = None
        for token in tokens:
            if _is_flag(token) and "=" in token:
                if pending is not None:
                    self.replace_arg(pending)
                    pending = None
                name, value = token.split("=", 1)
                self.replace_arg(name, value)
            elif _is_flag(token):
                if pending is not None:
                    self.replace_arg(pending)
                pending = token
            elif pending is not None:
                self.replace_arg(pending, token)
                pending = None
            else:
                self.replace_arg(token)
        if pending is not None:
            self.replace_arg(pending)

    def names(self) -> List[str]:
        return [argument.name for argument in self._arguments]

    def values(self, name: str) -> List[Optional[str]]:
        return [argument.value for argument in self._arguments if argument.name == name]

    def render(self) -> List[str]:
        """Return the flat token list used to spawn the process."""
        tokens: List[str] = []
        for argument in self._arguments:
            tokens.extend(argument.tokens())
        return tokens

    def __contains__(self, name: object) -> bool:
        return any(argument.name == name for argument in self._arguments)

    def __iter__(self) -> Iterator[Argument]:
        return iter(self._arguments)

    def __len__(self) -> int:
        return len(self._arguments)

    def __repr__(self) -> str:
        return f"ArgumentPlan({self.render()!r})"
