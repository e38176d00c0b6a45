"""Session protocol and the single-connection transport loop."""

from vectorpipe.server.protocol import Session, format_results
from vectorpipe.server.transport import VectorPipeServer, serve

__all__ = [
    "Session",
    "VectorPipeServer",
    "format_results",
    "serve",
]
