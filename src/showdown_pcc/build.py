"""Build-freshness check for the compiled simulator artifacts.

The check only looks for the compiled dex entry point. Edits made after a build
are not detected; that staleness is accepted for every command except starting
the server, which always rebuilds once per invocation.
"""

import stat
import subprocess
from pathlib import Path
from typing import Callable, Optional

from .config import BUILD_SCRIPT, NODE_EXECUTABLE, ShowdownPaths
from .errors import BuildError, NodeNotFoundError

# Suffixes tried, in order, when resolving a module path the way `require` does
_MODULE_CANDIDATES = ("", ".js", ".json", "/index.js")


def resolve_module(base: Path) -> Path:
    """
    Resolve `base` to an existing module file.

    Raises:
        FileNotFoundError: If no candidate exists (the artifact is absent).
        OSError: Any other failure while probing propagates, including
            NotADirectoryError when a parent such as `.sim-dist` is a file.
    """
    for suffix in _MODULE_CANDIDATES:
        candidate = Path(f"{base}{suffix}")
        try:
            mode = candidate.stat().st_mode
        except FileNotFoundError:
            continue
        if stat.S_ISREG(mode):
            return candidate
    raise FileNotFoundError(f"Cannot find module '{base}'")


Runner = Callable[..., subprocess.CompletedProcess]


class BuildFreshness:
    """
    Per-invocation build state.

    `built` records whether `node build` already ran in this process, so that
    `ensure()` and `force()` never build twice.
    """

    def __init__(self, paths: ShowdownPaths, runner: Optional[Runner] = None):
        self.paths = paths
        self.built = False
        self._checked = False
        self._runner = runner if runner is not None else subprocess.run

    def build(self) -> None:
        """Run `node build` in the checkout, blocking, with inherited stdio."""
        cmd = [NODE_EXECUTABLE, BUILD_SCRIPT]
        try:
            result = self._runner(cmd, cwd=str(self.paths.root), check=False)
        except FileNotFoundError as e:
            raise NodeNotFoundError(NODE_EXECUTABLE) from e
        if result.returncode != 0:
            raise BuildError(result.returncode, cmd)
        self.built = True

    def ensure(self) -> bool:
        """
        Build if the compiled dex entry point is missing.

        Returns:
            True if a build has run in this invocation.
        """
        if self._checked:
            return self.built
        try:
            resolve_module(self.paths.dex_entry)
        except FileNotFoundError:
            self.build()
        self._checked = True
        return self.built

    def force(self) -> bool:
        """Build unless a build already ran in this invocation."""
        self.ensure()
        if not self.built:
            self.build()
        return self.built
