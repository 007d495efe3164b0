"""Symtrail: incremental symbol-graph writer for code-navigation databases."""

from symtrail.core.database import SymbolDB
from symtrail.core.graph.hierarchy import NameElement, NameHierarchy
from symtrail.core.graph.model import (
    ComponentAccessType,
    EdgeType,
    NodeType,
    SourceLocationType,
    SymbolType,
)

__version__ = "0.1.0"

__all__ = [
    "ComponentAccessType",
    "EdgeType",
    "NameElement",
    "NameHierarchy",
    "NodeType",
    "SourceLocationType",
    "SymbolDB",
    "SymbolType",
    "__version__",
]
