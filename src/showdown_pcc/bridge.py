"""Node-backed collaborators: the Python side of js/sim_bridge.js.

Team operations share one `node sim_bridge.js serve` process per invocation,
started on first use in the Showdown checkout: each call writes one JSON
request line to its stdin and reads one JSON response line from its stdout, so
the compiled dex is loaded once however many operations a command needs. The
battle stream and the server are separate long-lived Node processes.

Protocol sent:
```
{"op": "generate-team", "format": "gen7randombattle", "seed": [1, 2, 3, 4]}
```
Protocol received:
```
{"ok": true, "result": ...}
{"ok": false, "error": "TypeError: ...stack..."}
```
"""

from __future__ import annotations

import json
import subprocess
import tempfile
import threading
from pathlib import Path
from typing import IO, Any, Callable, Iterator, List, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError

from .collaborators import Collaborators, Team
from .config import BRIDGE_SCRIPT, NODE_EXECUTABLE, SERVER_ENTRY, ShowdownPaths
from .errors import NodeNotFoundError, SimulatorError


class BridgeResponse(BaseModel):
    """One response line written by the bridge script."""

    ok: bool = Field(..., description="False if the collaborator threw")
    result: Any = Field(None, description="Collaborator return value (JSON)")
    error: Optional[str] = Field(None, description="JavaScript error text when ok is false")


class NodeBridge:
    """Run collaborator operations through one `serve` bridge process."""

    def __init__(
        self,
        paths: ShowdownPaths,
        *,
        script: Path = BRIDGE_SCRIPT,
        node: str = NODE_EXECUTABLE,
    ):
        self.paths = paths
        self.script = script
        self.node = node
        self._proc: Optional[subprocess.Popen] = None
        self._stderr: Optional[IO[str]] = None
        self._lock = threading.Lock()

    def command(self, mode: str, *extra: str) -> List[str]:
        return [self.node, str(self.script), mode, *extra]

    def _start(self) -> subprocess.Popen:
        if self._proc is not None:
            return self._proc
        # stderr goes to a file so a chatty simulator can never fill a pipe
        self._stderr = tempfile.TemporaryFile("w+", encoding="utf-8")
        try:
            self._proc = subprocess.Popen(
                self.command("serve"),
                cwd=str(self.paths.root),
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=self._stderr,
                text=True,
                encoding="utf-8",
                bufsize=1,
            )
        except FileNotFoundError as e:
            self._stderr.close()
            self._stderr = None
            raise NodeNotFoundError(self.node) from e
        return self._proc

    def _failure(self, op: str) -> SimulatorError:
        proc = self._proc
        try:
            proc.wait(timeout=5.0)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()
        stderr = ""
        if self._stderr is not None:
            self._stderr.seek(0)
            stderr = self._stderr.read()
        return SimulatorError(
            f"Command failed: {' '.join(self.command('serve'))}\n"
            f"Exit code: {proc.returncode}\n"
            f"STDERR:\n{stderr}",
            op=op,
        )

    def call(self, op: str, **payload: Any) -> Any:
        """
        Run one operation and return its JSON result.

        Raises:
            SimulatorError: If the operation threw in Node, or the bridge died or
                answered with something that is not a response line.
            NodeNotFoundError: If `node` is not installed.
        """
        request = json.dumps({"op": op, **payload})
        with self._lock:
            proc = self._start()
            try:
                proc.stdin.write(request + "\n")
                proc.stdin.flush()
            except BrokenPipeError:
                raise self._failure(op) from None

            # readline splits on "\n" only; U+2028 inside a JSON string stays put
            line = proc.stdout.readline()
            if not line:
                raise self._failure(op)

        try:
            response = BridgeResponse.model_validate_json(line)
        except ValidationError as e:
            raise SimulatorError(f"Malformed bridge response for {op}: {line.rstrip()!r}", op=op) from e

        if not response.ok:
            raise SimulatorError(response.error or f"{op} failed", op=op)
        return response.result

    def close(self) -> None:
        """End the bridge's input and wait for it to exit."""
        proc, self._proc = self._proc, None
        if proc is not None:
            try:
                proc.stdin.close()
            except BrokenPipeError:
                pass
            try:
                proc.wait(timeout=5.0)
            except subprocess.TimeoutExpired:
                proc.terminate()
                proc.wait()
            proc.stdout.close()
        if self._stderr is not None:
            self._stderr.close()
            self._stderr = None


class NodeDex:
    def __init__(self, bridge: NodeBridge):
        self.bridge = bridge

    def generate_team(self, format_id: Optional[str], seed: Optional[Sequence[int]] = None) -> Team:
        return self.bridge.call(
            "generate-team",
            format=format_id,
            seed=list(seed) if seed is not None else None,
        )

    def pack_team(self, team: Team) -> str:
        return self.bridge.call("pack-team", team=team)

    def fast_unpack_team(self, text: str) -> Team:
        return self.bridge.call("unpack-team", text=text)


class NodeTeamValidator:
    def __init__(self, bridge: NodeBridge, format_id: Optional[str]):
        self.bridge = bridge
        self.format_id = format_id

    def validate_team(self, team: Team) -> Optional[List[str]]:
        return self.bridge.call("validate-team", format=self.format_id, team=team)


class NodeBattleTextStream:
    """A `battle-stream` bridge process; protocol lines in, protocol lines out.

    `write`/`end` run on the input pump thread while `close` runs on the output
    thread, so both go through one lock; writing after the input side closed
    raises BrokenPipeError, the same as writing to a handler that exited.
    """

    def __init__(
        self,
        paths: ShowdownPaths,
        debug: bool = False,
        *,
        script: Path = BRIDGE_SCRIPT,
        node: str = NODE_EXECUTABLE,
    ):
        self.cmd = [node, str(script), "battle-stream"]
        if debug:
            self.cmd.append("--debug")
        try:
            self.proc = subprocess.Popen(
                self.cmd,
                cwd=str(paths.root),
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                bufsize=1,
            )
        except FileNotFoundError as e:
            raise NodeNotFoundError(node) from e

        if self.proc.stdin is None or self.proc.stdout is None:
            raise RuntimeError("Failed to start battle-stream with proper pipes")
        self._lock = threading.Lock()
        self._input_closed = False

    @property
    def returncode(self) -> Optional[int]:
        return self.proc.returncode

    def write(self, line: str) -> None:
        """Send a single protocol line and flush immediately."""
        with self._lock:
            if self._input_closed:
                raise BrokenPipeError("battle stream input is closed")
            self.proc.stdin.write(line + "\n")
            self.proc.stdin.flush()

    def end(self) -> None:
        with self._lock:
            if self._input_closed:
                return
            self._input_closed = True
            self.proc.stdin.close()

    def __iter__(self) -> Iterator[str]:
        for raw_line in self.proc.stdout:
            yield raw_line.rstrip("\n")

    def close(self) -> None:
        """Wait for the bridge to exit once its output is drained."""
        try:
            self.end()
        except BrokenPipeError:
            pass
        if self.proc.poll() is None:
            try:
                self.proc.wait(timeout=5.0)
            except subprocess.TimeoutExpired:
                self.proc.terminate()
                self.proc.wait()


def run_server(
    paths: ShowdownPaths,
    args: Sequence[str],
    *,
    node: str = NODE_EXECUTABLE,
    runner: Optional[Callable[..., subprocess.CompletedProcess]] = None,
) -> int:
    """
    Run the Showdown server in the foreground and return its exit status.

    `args` is forwarded after the entry point, so `["9000"]` hosts on port 9000
    and `[]` keeps the port from config/config.js.
    """
    runner = runner if runner is not None else subprocess.run
    cmd = [node, SERVER_ENTRY, *args]
    try:
        result = runner(cmd, cwd=str(paths.root), check=False)
    except FileNotFoundError as e:
        raise NodeNotFoundError(node) from e
    return result.returncode


def node_collaborators(paths: ShowdownPaths) -> Collaborators:
    """Collaborators backed by the compiled simulator in `paths.root`.

    The dex and every validator share one bridge process, started lazily.
    """
    bridge = NodeBridge(paths)
    return Collaborators(
        dex=lambda: NodeDex(bridge),
        validator=lambda format_id: NodeTeamValidator(bridge, format_id),
        battle_stream=lambda debug: NodeBattleTextStream(paths, debug),
        server=lambda args: run_server(paths, args),
        close=bridge.close,
    )
