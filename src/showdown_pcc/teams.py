"""Team-format commands: generate, validate, pack and unpack.

Each command reads at most one line from stdin, calls one collaborator
operation, then writes its whole output and returns the exit code. Nothing is
written before the input line has been read.

Failures come in two shapes that share exit code 1 but not their stderr text:
- InputError: the collaborator threw (bad JSON, bad packed team, ...); stderr
  gets the raw error.
- ValidationErrors: the validator returned problems; stderr gets one problem
  per line.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, TextIO, Union

from .collaborators import Collaborators, Dex, TeamValidator
from .errors import SimulatorError


@dataclass(frozen=True)
class TeamOk:
    """Success; `output` (if any) is written to stdout as one line."""

    output: Optional[str] = None


@dataclass(frozen=True)
class InputError:
    error: BaseException


@dataclass(frozen=True)
class ValidationErrors:
    messages: List[str] = field(default_factory=list)


TeamResult = Union[TeamOk, InputError, ValidationErrors]


def read_team_line(stdin: TextIO) -> str:
    """Read exactly one line (without its terminator); "" at end of input."""
    return stdin.readline().rstrip("\r\n")


def _read_or_error(stdin: TextIO) -> Union[str, InputError]:
    """Read the team line; undecodable bytes are malformed input, not a crash."""
    try:
        return read_team_line(stdin)
    except UnicodeDecodeError as e:
        return InputError(e)


def parse_seed(token: Optional[str]) -> Optional[List[int]]:
    """
    Parse a comma-separated seed such as "1,2,3,4".

    Returns:
        None when no seed was given (the generator picks its own).

    Raises:
        ValueError: If a part is not an integer.
    """
    if not token:
        return None
    return [int(part) for part in token.split(",")]


def format_error(error: BaseException) -> str:
    if isinstance(error, SimulatorError):
        return error.js_error
    return f"{type(error).__name__}: {error}"


def report(result: TeamResult, stdout: TextIO, stderr: TextIO) -> int:
    """Write a command result to the right stream and return its exit code."""
    if isinstance(result, TeamOk):
        if result.output is not None:
            stdout.write(result.output + "\n")
            stdout.flush()
        return 0
    if isinstance(result, ValidationErrors):
        stderr.write("\n".join(result.messages) + "\n")
        stderr.flush()
        return 1
    stderr.write(format_error(result.error) + "\n")
    stderr.flush()
    return 1


# ============================================================================
# Transforms
# ============================================================================


def generate_team(dex: Dex, format_id: Optional[str], seed: Optional[Sequence[int]] = None) -> str:
    """Generate a random team and return it packed. Errors propagate."""
    return dex.pack_team(dex.generate_team(format_id, seed))


def validate_team(dex: Dex, validator: TeamValidator, text: str) -> TeamResult:
    """Validate one packed or JSON team line."""
    try:
        team = dex.fast_unpack_team(text)
        problems = validator.validate_team(team)
    except Exception as e:  # noqa: BLE001
        return InputError(e)
    if problems:
        return ValidationErrors(list(problems))
    return TeamOk()


def unpack_team(dex: Dex, text: str) -> TeamResult:
    """Unpack one packed team line into single-line JSON."""
    try:
        team = dex.fast_unpack_team(text)
        output = json.dumps(team, ensure_ascii=False, separators=(",", ":"))
    except Exception as e:  # noqa: BLE001
        return InputError(e)
    return TeamOk(output)


def pack_team(dex: Dex, text: str) -> TeamResult:
    """Pack one JSON team line."""
    try:
        packed = dex.pack_team(json.loads(text))
    except Exception as e:  # noqa: BLE001
        return InputError(e)
    return TeamOk(packed)


# ============================================================================
# Commands
# ============================================================================


def run_generate_team(
    collaborators: Collaborators,
    format_id: Optional[str],
    seed_token: Optional[str],
    stdout: TextIO,
) -> int:
    seed = parse_seed(seed_token)
    packed = generate_team(collaborators.dex(), format_id, seed)
    stdout.write(packed + "\n")
    stdout.flush()
    return 0


def run_validate_team(
    collaborators: Collaborators,
    format_id: Optional[str],
    stdin: TextIO,
    stdout: TextIO,
    stderr: TextIO,
) -> int:
    dex = collaborators.dex()
    validator = collaborators.validator(format_id)
    text = _read_or_error(stdin)
    if isinstance(text, InputError):
        return report(text, stdout, stderr)
    return report(validate_team(dex, validator, text), stdout, stderr)


def run_unpack_team(collaborators: Collaborators, stdin: TextIO, stdout: TextIO, stderr: TextIO) -> int:
    dex = collaborators.dex()
    text = _read_or_error(stdin)
    if isinstance(text, InputError):
        return report(text, stdout, stderr)
    return report(unpack_team(dex, text), stdout, stderr)


def run_pack_team(collaborators: Collaborators, stdin: TextIO, stdout: TextIO, stderr: TextIO) -> int:
    dex = collaborators.dex()
    text = _read_or_error(stdin)
    if isinstance(text, InputError):
        return report(text, stdout, stderr)
    return report(pack_team(dex, text), stdout, stderr)
