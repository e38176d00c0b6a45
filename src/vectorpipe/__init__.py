"""vectorpipe - in-memory vector database served over a local line protocol."""

__version__ = "0.1.0"
