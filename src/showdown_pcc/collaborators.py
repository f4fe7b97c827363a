"""Interfaces of the simulator pieces the launcher calls into.

The rules engine, team validator, random team generator and battle text stream
all live in the Showdown checkout. Commands only see these protocols, and get
them through `Collaborators` factories so that a command never constructs a
collaborator it does not use.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterator, List, Optional, Protocol, Sequence

# Structured (JSON-form) team: whatever the dex produces, JSON-serialisable
Team = Any


class Dex(Protocol):
    def generate_team(self, format_id: Optional[str], seed: Optional[Sequence[int]] = None) -> Team:
        ...

    def pack_team(self, team: Team) -> str:
        ...

    def fast_unpack_team(self, text: str) -> Team:
        ...


class TeamValidator(Protocol):
    def validate_team(self, team: Team) -> Optional[List[str]]:
        """Return None (or an empty list) when valid, else human-readable problems."""
        ...


class BattleTextStream(Protocol):
    """Line-oriented battle protocol handler.

    `write` and `end` are called from the input pump thread while the caller
    iterates output lines on another thread.
    """

    def write(self, line: str) -> None:
        ...

    def end(self) -> None:
        ...

    def __iter__(self) -> Iterator[str]:
        ...

    def close(self) -> None:
        ...

    @property
    def returncode(self) -> Optional[int]:
        """Exit status once closed; None or 0 means the session ended cleanly."""
        ...


@dataclass
class Collaborators:
    """Factories for everything a command may need from the simulator checkout."""

    dex: Callable[[], Dex]
    validator: Callable[[Optional[str]], TeamValidator]
    battle_stream: Callable[[bool], BattleTextStream]
    server: Callable[[List[str]], int]
    close: Callable[[], None] = lambda: None
