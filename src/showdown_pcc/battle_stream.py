"""simulate-battle: relay stdin/stdout through a battle text stream.

Two directions run independently so neither can block the other:
- a daemon thread reads protocol lines from stdin and writes them into the
  stream, then ends the stream's input at EOF;
- the calling thread drains the stream's output, writing and flushing each
  line before taking the next, so stdout order is the order the stream
  produced.

The session exits with the stream's own status, so a crashed handler is not
reported as a finished battle.
"""

from __future__ import annotations

import threading
from typing import TextIO

import typer

from .collaborators import BattleTextStream


def _pump_input(stdin: TextIO, stream: BattleTextStream) -> None:
    try:
        for raw_line in stdin:
            stream.write(raw_line.rstrip("\r\n"))
    except BrokenPipeError:
        # The stream stopped reading; its output side decides when we finish.
        return
    finally:
        try:
            stream.end()
        except BrokenPipeError:
            pass


def pipe_battle(stream: BattleTextStream, stdin: TextIO, stdout: TextIO, *, debug: bool = False) -> int:
    """Run one session until the stream's output ends; return the stream's exit status."""
    if debug:
        typer.echo("[simulate-battle] session started", err=True)

    pump = threading.Thread(target=_pump_input, args=(stdin, stream), daemon=True)
    pump.start()
    try:
        for line in stream:
            stdout.write(line + "\n")
            stdout.flush()
    finally:
        stream.close()

    code = stream.returncode or 0
    if code < 0:
        # killed by signal N: report it the way a shell does
        code = 128 - code
    if debug:
        typer.echo(f"[simulate-battle] session ended (exit code {code})", err=True)
    return code
