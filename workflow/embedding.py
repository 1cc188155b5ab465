import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Protocol, Sequence

from common.errors import ValidationError
from common.models import Point

logger = logging.getLogger(__name__)


@dataclass
class Document:
    id: str
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)


class Embedder(Protocol):
    """Protocol for a remote embedding model."""

    def embed(self, texts: List[str]) -> List[Sequence[float]]:
        ...


def _embed_batch(embedder: Embedder, batch: List[Document]) -> List[Sequence[float]]:
    vectors = embedder.embed([doc.content for doc in batch])
    if len(vectors) != len(batch):
        raise ValidationError(f"Embedder returned {len(vectors)} vectors for {len(batch)} documents")
    return vectors


def embed_documents(
    documents: Iterable[Document],
    embedder: Embedder,
    batch_size: int = 10,
    max_workers: int = 4,
) -> List[Point]:
    """
    Embed documents in parallel batches.

    Returns one Point per document in input order; the document content is
    kept under `metadata["content"]` next to the document's own metadata.
    """
    documents = list(documents)
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1.")

    vectors: List[Sequence[float]] = []
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = []
        for i in range(0, len(documents), batch_size):
            futures.append(pool.submit(_embed_batch, embedder, documents[i : i + batch_size]))

        for done, fut in enumerate(futures, start=1):
            vectors.extend(fut.result())
            logger.info(f"Embedded batch {done}/{len(futures)} ({len(vectors)}/{len(documents)} documents)")

    return [
        Point(id=doc.id, vector=vec, metadata={**doc.metadata, "content": doc.content})
        for doc, vec in zip(documents, vectors)
    ]
