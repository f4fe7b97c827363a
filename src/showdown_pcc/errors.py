"""Exceptions raised while driving the Showdown simulator from Python."""

from typing import Optional


class SimulatorError(RuntimeError):
    """A simulator collaborator threw inside Node.

    `js_error` holds the JavaScript error text (usually its stack) exactly as the
    bridge reported it.
    """

    def __init__(self, js_error: str, op: Optional[str] = None):
        self.js_error = js_error
        self.op = op
        super().__init__(js_error)


class BuildError(RuntimeError):
    """`node build` exited non-zero; `returncode` becomes the process exit status."""

    def __init__(self, returncode: int, cmd: list[str]):
        self.returncode = returncode
        self.cmd = cmd
        super().__init__(f"Build failed: {' '.join(cmd)} (exit code {returncode})")


class NodeNotFoundError(RuntimeError):
    def __init__(self, executable: str = "node"):
        self.executable = executable
        super().__init__(
            f"Node.js not found ({executable!r}). Please install Node.js 16+ from https://nodejs.org/"
        )
