"""Exception taxonomy for graph builds.

    CallGraphError
    ├── ScopeResolutionError   recovered by the builder as an empty scope
    ├── OracleError
    │   ├── LayoutOracleError
    │   └── ReferenceSearchError
    ├── BuildCancelled         a cancelled build, never shown as a failure
    └── GraphContractError     orchestration bug, always re-raised
"""


class CallGraphError(Exception):
    """Base class for every error raised by callgraph."""


class ScopeResolutionError(CallGraphError):
    """The selected module or directory does not exist."""


class OracleError(CallGraphError):
    """An external oracle was unavailable or answered with garbage."""


class LayoutOracleError(OracleError):
    """The layout program failed or returned malformed coordinates."""


class ReferenceSearchError(OracleError):
    """The caller/callee search failed."""


class BuildCancelled(CallGraphError):
    """Raised at a cancellation checkpoint."""


class GraphContractError(CallGraphError):
    """A graph was mutated in a way its callers promised never to do."""
