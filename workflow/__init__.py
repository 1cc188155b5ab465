"""Glue around the clustering engine: embedding, storage and merging."""

from .embedding import Document, Embedder, embed_documents
from .merge import DocumentMerger, MergedDocumentModel, MergeReport, Summarizer
from .vector_store import RedisVectorStore

__all__ = [
    "Document",
    "Embedder",
    "embed_documents",
    "DocumentMerger",
    "MergedDocumentModel",
    "MergeReport",
    "Summarizer",
    "RedisVectorStore",
]
