"""Configuration and path management for showdown-pcc."""

from pathlib import Path
from typing import Final, Optional

from pydantic import BaseModel, Field

# Project root: the directory containing pyproject.toml
PROJECT_ROOT: Final[Path] = Path(__file__).parent.parent.parent.resolve()

# Showdown root fallback: sibling directory containing pokemon-showdown
DEFAULT_SHOWDOWN_ROOT: Final[Path] = PROJECT_ROOT.parent / "pokemon-showdown"

# Compiled artifacts produced by `node build`
SIM_DIST_DIR: Final[str] = ".sim-dist"
DEX_ENTRY: Final[str] = f"{SIM_DIST_DIR}/dex"

NODE_EXECUTABLE: Final[str] = "node"
BUILD_SCRIPT: Final[str] = "build"
SERVER_ENTRY: Final[str] = "server"

# Bridge script shipped with this package; it is the only code that loads .sim-dist
BRIDGE_SCRIPT: Final[Path] = Path(__file__).parent / "js" / "sim_bridge.js"

# Format the simulator falls back to when none is given (shown in help only)
DEFAULT_FORMAT: Final[str] = "gen7randombattle"


class ShowdownPaths(BaseModel):
    """Locations inside one Pokemon Showdown checkout."""

    root: Path = Field(..., description="Checkout root (where `node build` runs)")

    @property
    def dex_entry(self) -> Path:
        return self.root / DEX_ENTRY


def looks_like_checkout(path: Path) -> bool:
    """Return True if `path` has a Showdown build script or sim sources."""
    return (path / BUILD_SCRIPT).is_file() or (path / "sim").is_dir()


def resolve_showdown_root(cwd: Optional[Path] = None) -> Path:
    """
    Pick the Showdown checkout to operate on.

    The current directory wins when it looks like a checkout, mirroring how the
    simulator's own launcher runs from its directory. Otherwise fall back to the
    sibling `pokemon-showdown/` directory of this project.
    """
    cwd = Path.cwd() if cwd is None else cwd
    if looks_like_checkout(cwd):
        return cwd.resolve()
    return DEFAULT_SHOWDOWN_ROOT


def default_paths(cwd: Optional[Path] = None) -> ShowdownPaths:
    return ShowdownPaths(root=resolve_showdown_root(cwd))
