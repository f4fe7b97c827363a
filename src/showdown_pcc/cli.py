"""Command dispatcher for the `pokemon-showdown` entry point.

The first argument selects exactly one mode:
- absent or all digits: start the server, with that argument as the port
- `start [PORT]`: legacy alias; drops `start` and uses the next argument as the port
- a help token, or one of the team / battle commands
- anything else: "Unrecognized command", exit code 1
"""

import re
import sys
from dataclasses import dataclass
from typing import List, Optional, Sequence, TextIO, Tuple

import typer

from .battle_stream import pipe_battle
from .bridge import node_collaborators
from .build import BuildFreshness
from .collaborators import Collaborators
from .config import DEFAULT_FORMAT, default_paths
from .errors import BuildError
from .teams import run_generate_team, run_pack_team, run_unpack_team, run_validate_team

PROG_NAME = "pokemon-showdown"
START_BANNER = "Starting PCC Pokemon Build!"

HELP_TOKENS = frozenset({"help", "h", "?", "-h", "--help", "-?"})
TEAM_COMMANDS = frozenset({"generate-team", "validate-team", "unpack-team", "pack-team"})

HELP_TEXT = f"""\
{PROG_NAME} start [PORT]

  Starts a PS server on the specified port
  (Defaults to the port setting in config/config.js)
  (The port setting in config/config.js defaults to 8000)

{PROG_NAME} generate-team [FORMAT-ID [RANDOM-SEED]]

  Generates a random team, and writes it to stdout in packed team format
  (Format defaults to "{DEFAULT_FORMAT}")

{PROG_NAME} validate-team [FORMAT-ID]

  Reads a team from stdin, and validates it
  If valid: exits with code 0
  If invalid: writes errors to stderr, exits with code 1

{PROG_NAME} simulate-battle

  Simulates a battle, taking input to stdin and writing output to stdout
  Protocol is documented in ./.sim-dist/README.md

{PROG_NAME} unpack-team

  Reads a team from stdin, writes the unpacked JSON to stdout

{PROG_NAME} pack-team

  Reads a JSON team from stdin, writes the packed team to stdout
  NOTE for all team-processing functions: We can only handle JSON teams
  and packed teams; the PS server is incapable of processing exported
  teams.

{PROG_NAME} help

  Displays this reference
"""

_PORT_RE = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class Route:
    """Where one invocation goes.

    `command` is "start-server", "help", "unrecognized" or a command token;
    `args` are the arguments that command consumes.
    """

    command: str
    args: Tuple[str, ...] = ()
    banner: bool = False

    def arg(self, index: int) -> Optional[str]:
        return self.args[index] if index < len(self.args) else None


def route(argv: Sequence[str]) -> Route:
    """Map process arguments (without the program name) to a Route."""
    first = argv[0] if argv else None
    if not first or _PORT_RE.fullmatch(first):
        return Route("start-server", tuple(argv) if first else ())

    rest = tuple(argv[1:])
    if first in HELP_TOKENS:
        return Route("help")
    if first == "start":
        # Legacy alias: everything after `start` shifts left, so the next
        # argument takes the port position.
        return Route("start-server", rest, banner=True)
    if first in TEAM_COMMANDS or first == "simulate-battle":
        return Route(first, rest)
    return Route("unrecognized", (first,))


def dispatch(
    argv: Sequence[str],
    collaborators: Collaborators,
    freshness: BuildFreshness,
    *,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
    stderr: Optional[TextIO] = None,
) -> int:
    """
    Run the one command selected by `argv` and return the exit code.

    Raises:
        BuildError: If a required build failed.
    """
    stdin = stdin if stdin is not None else sys.stdin
    stdout = stdout if stdout is not None else sys.stdout
    stderr = stderr if stderr is not None else sys.stderr

    selected = route(argv)

    if selected.command == "help":
        stdout.write(HELP_TEXT)
        stdout.flush()
        return 0

    if selected.command == "unrecognized":
        stderr.write(f"Unrecognized command: {selected.arg(0)}\n")
        stderr.write(f"Use `{PROG_NAME} help` for help\n")
        stderr.flush()
        return 1

    if selected.command == "start-server":
        if selected.banner:
            stdout.write(START_BANNER + "\n")
            stdout.flush()
        # The server always runs on freshly built code.
        freshness.force()
        return collaborators.server(list(selected.args))

    freshness.ensure()

    if selected.command == "generate-team":
        return run_generate_team(collaborators, selected.arg(0), selected.arg(1), stdout)
    if selected.command == "validate-team":
        return run_validate_team(collaborators, selected.arg(0), stdin, stdout, stderr)
    if selected.command == "unpack-team":
        return run_unpack_team(collaborators, stdin, stdout, stderr)
    if selected.command == "pack-team":
        return run_pack_team(collaborators, stdin, stdout, stderr)

    # simulate-battle
    debug = selected.arg(0) == "--debug"
    return pipe_battle(collaborators.battle_stream(debug), stdin, stdout, debug=debug)


app = typer.Typer(
    add_completion=False,
    help="Pokemon Showdown launcher: server, team tools and battle streams",
)


@app.command(
    context_settings={
        "help_option_names": [],
        "allow_extra_args": True,
        "ignore_unknown_options": True,
    }
)
def run(args: Optional[List[str]] = typer.Argument(None, help="Command and its arguments")):
    """Run one launcher command; `help` lists them."""
    paths = default_paths()
    collaborators = node_collaborators(paths)
    try:
        code = dispatch(args or [], collaborators, BuildFreshness(paths))
    except BuildError as e:
        typer.echo(f"[build] {e}", err=True)
        raise typer.Exit(e.returncode)
    finally:
        collaborators.close()
    raise typer.Exit(code)


def main(argv: Optional[List[str]] = None) -> None:
    argv = sys.argv[1:] if argv is None else list(argv)
    # A leading "--" stops option parsing, so every token (including a
    # literal "--") reaches the router untouched.
    app(args=["--", *argv], prog_name=PROG_NAME)


if __name__ == "__main__":
    main()
