"""Core functionality: embeddings, similarity ranking and the vector store."""

# Import directly from submodules:
#   from vectorpipe.core.store import VectorStore
#   from vectorpipe.core.embeddings import create_embedding_provider

__all__ = []
