"""Source index — concrete reference oracle over a parsed source tree."""

from callgraph.index.source_index import Scope, ScopeKind, SourceIndex, functions_named

__all__ = ["Scope", "ScopeKind", "SourceIndex", "functions_named"]
