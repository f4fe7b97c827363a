"""showdown-pcc: Python entry point for a Pokemon Showdown checkout."""

from .build import BuildFreshness, resolve_module
from .cli import dispatch, main, route
from .collaborators import BattleTextStream, Collaborators, Dex, TeamValidator
from .config import ShowdownPaths, default_paths
from .errors import BuildError, NodeNotFoundError, SimulatorError
from .teams import InputError, TeamOk, ValidationErrors

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Entry points
    "main",
    "dispatch",
    "route",
    # Build
    "BuildFreshness",
    "resolve_module",
    # Collaborators
    "Collaborators",
    "Dex",
    "TeamValidator",
    "BattleTextStream",
    # Config
    "ShowdownPaths",
    "default_paths",
    # Results / errors
    "TeamOk",
    "InputError",
    "ValidationErrors",
    "BuildError",
    "NodeNotFoundError",
    "SimulatorError",
]
