"""Tests for the Node bridge processes.

A small Python script stands in for js/sim_bridge.js: the bridge classes only
care about the line protocol, so running it with `node=sys.executable` drives
the real subprocess plumbing without a Showdown checkout.
"""

import io
import subprocess
import sys
import textwrap
from unittest.mock import MagicMock

import pytest

from showdown_pcc.battle_stream import pipe_battle
from showdown_pcc.bridge import (
    NodeBattleTextStream,
    NodeBridge,
    NodeDex,
    NodeTeamValidator,
    node_collaborators,
    run_server,
)
from showdown_pcc.config import ShowdownPaths
from showdown_pcc.errors import NodeNotFoundError, SimulatorError

FAKE_BRIDGE = textwrap.dedent(
    """
    import json
    import os
    import sys

    sys.stdin.reconfigure(encoding="utf-8")
    sys.stdout.reconfigure(encoding="utf-8")


    def respond(obj):
        sys.stdout.write(json.dumps(obj, ensure_ascii=False) + "\\n")
        sys.stdout.flush()


    def serve():
        for line in sys.stdin:
            req = json.loads(line)
            op = req.pop("op")
            if op == "crash":
                sys.stderr.write("Error: Cannot find module './.sim-dist/dex'\\n")
                sys.exit(1)
            if op == "garbage":
                sys.stdout.write("not json\\n")
                sys.stdout.flush()
            elif op == "throw":
                respond({"ok": False, "error": "TypeError: bad team\\n    at packTeam"})
            elif op == "pid":
                respond({"ok": True, "result": os.getpid()})
            elif op == "unpack-team":
                respond({"ok": True, "result": [{"name": "Line\\u2028Break", "species": req["text"]}]})
            else:
                respond({"ok": True, "result": {"op": op, **req}})


    def battle_stream(debug):
        tag = "debug" if debug else "echo"
        for line in sys.stdin:
            line = line.rstrip("\\n")
            if line == ">crash":
                print("|error|boom", flush=True)
                sys.exit(3)
            print("update", flush=True)
            print(f"|{tag}|{line}", flush=True)


    if sys.argv[1] == "serve":
        serve()
    else:
        battle_stream("--debug" in sys.argv[2:])
    """
)


@pytest.fixture
def script(tmp_path):
    path = tmp_path / "fake_bridge.py"
    path.write_text(FAKE_BRIDGE, encoding="utf-8")
    return path


@pytest.fixture
def paths(tmp_path):
    return ShowdownPaths(root=tmp_path)


@pytest.fixture
def bridge(paths, script):
    bridge = NodeBridge(paths, script=script, node=sys.executable)
    yield bridge
    bridge.close()


def _stream(paths, script, debug=False):
    return NodeBattleTextStream(paths, debug, script=script, node=sys.executable)


# ============================================================================
# serve
# ============================================================================


def test_call_sends_op_and_payload(bridge):
    result = bridge.call("pack-team", team=[{"species": "Pikachu"}])
    assert result == {"op": "pack-team", "team": [{"species": "Pikachu"}]}


def test_calls_share_one_process(bridge):
    first = bridge.call("pid")
    bridge.call("pack-team", team=[])
    assert bridge.call("pid") == first


def test_line_separator_inside_result_is_not_a_line_break(bridge):
    """U+2028 in a JSON string stays inside its response line."""
    team = bridge.call("unpack-team", text="Pikachu")
    assert team == [{"name": "Line\u2028Break", "species": "Pikachu"}]
    # the next response is still read in step
    assert bridge.call("pack-team", team=[]) == {"op": "pack-team", "team": []}


def test_js_error_becomes_simulator_error(bridge):
    with pytest.raises(SimulatorError) as excinfo:
        bridge.call("throw")
    assert excinfo.value.js_error == "TypeError: bad team\n    at packTeam"
    assert excinfo.value.op == "throw"


def test_malformed_response_becomes_simulator_error(bridge):
    with pytest.raises(SimulatorError, match="Malformed bridge response"):
        bridge.call("garbage")


def test_bridge_crash_becomes_simulator_error(bridge):
    with pytest.raises(SimulatorError) as excinfo:
        bridge.call("crash")
    assert "Exit code: 1" in str(excinfo.value)
    assert "Cannot find module" in str(excinfo.value)


def test_close_without_calls_is_a_no_op(paths, script):
    bridge = NodeBridge(paths, script=script, node=sys.executable)
    bridge.close()
    bridge.close()


def test_close_restarts_on_next_call(bridge):
    first = bridge.call("pid")
    bridge.close()
    assert bridge.call("pid") != first


def test_missing_node(paths, script):
    bridge = NodeBridge(paths, script=script, node="/nonexistent/node")
    with pytest.raises(NodeNotFoundError, match="Node.js not found"):
        bridge.call("unpack-team", text="x")


def test_dex_and_validator_requests():
    bridge = MagicMock()
    dex = NodeDex(bridge)

    dex.generate_team("gen9ou", (1, 2, 3, 4))
    bridge.call.assert_called_with("generate-team", format="gen9ou", seed=[1, 2, 3, 4])
    dex.generate_team(None)
    bridge.call.assert_called_with("generate-team", format=None, seed=None)
    dex.fast_unpack_team("Pikachu||||")
    bridge.call.assert_called_with("unpack-team", text="Pikachu||||")

    validator = NodeTeamValidator(bridge, "gen9ou")
    validator.validate_team([{"species": "Pikachu"}])
    bridge.call.assert_called_with("validate-team", format="gen9ou", team=[{"species": "Pikachu"}])


# ============================================================================
# battle-stream
# ============================================================================


def test_battle_stream_preserves_order(paths, script):
    stream = _stream(paths, script)
    for line in [">start {}", ">player p1 {}", ">p1 move 1"]:
        stream.write(line)
    stream.end()

    assert list(stream) == [
        "update", "|echo|>start {}",
        "update", "|echo|>player p1 {}",
        "update", "|echo|>p1 move 1",
    ]
    stream.close()
    assert stream.returncode == 0


def test_debug_flag_reaches_bridge_argv(paths, script):
    stream = _stream(paths, script, debug=True)
    assert stream.cmd[-2:] == ["battle-stream", "--debug"]

    stream.write(">start {}")
    stream.end()
    assert list(stream) == ["update", "|debug|>start {}"]
    stream.close()


def test_crashed_stream_exit_status_reaches_session(paths, script):
    stream = _stream(paths, script)
    out = io.StringIO()

    code = pipe_battle(stream, io.StringIO(">start {}\n>crash\n>p1 move 1\n"), out)

    assert code == 3
    assert out.getvalue().splitlines()[-1] == "|error|boom"


def test_write_after_end_is_a_broken_pipe(paths, script):
    stream = _stream(paths, script)
    stream.end()
    stream.end()
    with pytest.raises(BrokenPipeError):
        stream.write(">start {}")
    assert list(stream) == []
    stream.close()


def test_battle_stream_missing_node(paths, script):
    with pytest.raises(NodeNotFoundError):
        NodeBattleTextStream(paths, script=script, node="/nonexistent/node")


# ============================================================================
# server and bundle
# ============================================================================


def test_run_server_forwards_port_and_exit_status(paths, tmp_path):
    runner = MagicMock(return_value=subprocess.CompletedProcess(args=[], returncode=4))
    code = run_server(paths, ["9000"], runner=runner)

    assert code == 4
    runner.assert_called_once_with(["node", "server", "9000"], cwd=str(tmp_path), check=False)


def test_node_collaborators_are_lazy(paths, monkeypatch):
    """Building the bundle starts no Node process; dex and validators share one bridge."""
    popen = MagicMock()
    monkeypatch.setattr(subprocess, "Popen", popen)

    collaborators = node_collaborators(paths)
    dex = collaborators.dex()
    validator = collaborators.validator("gen9ou")

    assert isinstance(dex, NodeDex)
    assert validator.format_id == "gen9ou"
    assert validator.bridge is dex.bridge
    popen.assert_not_called()
    collaborators.close()
