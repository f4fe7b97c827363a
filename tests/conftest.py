"""In-memory stand-ins for the simulator collaborators."""

import json
import queue
import random
from typing import Any, List, Optional, Sequence
from unittest.mock import MagicMock

import pytest

from showdown_pcc.build import BuildFreshness
from showdown_pcc.collaborators import Collaborators

SPECIES_POOL = [
    "Pikachu", "Charizard", "Blastoise", "Venusaur", "Gengar", "Dragonite",
    "Snorlax", "Lapras", "Alakazam", "Machamp", "Gyarados", "Mewtwo",
]


class FakeDex:
    """Packs a team as species names joined by "]"."""

    def __init__(self):
        self.calls: List[str] = []

    def generate_team(self, format_id: Optional[str], seed: Optional[Sequence[int]] = None) -> Any:
        self.calls.append("generate_team")
        rng = random.Random(",".join(str(n) for n in seed) if seed else None)
        return [{"species": s} for s in rng.sample(SPECIES_POOL, k=6)]

    def pack_team(self, team: Any) -> str:
        self.calls.append("pack_team")
        if not isinstance(team, list):
            raise TypeError("team must be a list")
        return "]".join(mon["species"] for mon in team)

    def fast_unpack_team(self, text: str) -> Any:
        self.calls.append("fast_unpack_team")
        if not text:
            return None
        if text.startswith("["):
            return json.loads(text)
        if "!" in text:
            raise ValueError(f"Malformed packed team: {text}")
        return [{"species": s} for s in text.split("]")]


class FakeValidator:
    """Bans Mewtwo; anything that is not a team is an error."""

    def __init__(self, format_id: Optional[str] = None):
        self.format_id = format_id

    def validate_team(self, team: Any) -> Optional[List[str]]:
        if not isinstance(team, list):
            raise TypeError("Cannot validate a missing team")
        problems = [f"{mon['species']} is banned." for mon in team if mon["species"] == "Mewtwo"]
        return problems or None


class FakeBattleStream:
    """Answers each protocol line with an `update` block echoing it."""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.received: List[str] = []
        self.closed = False
        self.returncode = 0
        self._out: "queue.Queue[Optional[str]]" = queue.Queue()

    def write(self, line: str) -> None:
        self.received.append(line)
        self._out.put("update")
        self._out.put(f"|echo|{line}")

    def end(self) -> None:
        self._out.put(None)

    def __iter__(self):
        while True:
            line = self._out.get(timeout=5)
            if line is None:
                return
            yield line

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_dex():
    return FakeDex()


@pytest.fixture
def battle_streams():
    """Streams created by the collaborators fixture, in creation order."""
    return []


@pytest.fixture
def collaborators(fake_dex, battle_streams):
    def make_stream(debug: bool) -> FakeBattleStream:
        stream = FakeBattleStream(debug)
        battle_streams.append(stream)
        return stream

    return Collaborators(
        dex=lambda: fake_dex,
        validator=FakeValidator,
        battle_stream=make_stream,
        server=MagicMock(return_value=0),
    )


@pytest.fixture
def freshness():
    return MagicMock(spec=BuildFreshness)
