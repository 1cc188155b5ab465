"""
Redis-backed vector store for (id, vector, metadata) records.
"""
import json
import logging
from typing import Iterable, List, Optional, Tuple

import redis

from clustering.engine import find_similar
from common.errors import ValidationError
from common.models import DistanceMetric, Point

logger = logging.getLogger(__name__)


class RedisVectorStore:
    """Persist embedding records in Redis under a named index"""

    def __init__(
        self,
        host: str = "redis",
        port: int = 6379,
        db: int = 0,
        index_name: str = "embeddings-index",
        dimensions: Optional[int] = None,
        client: Optional[redis.Redis] = None,
    ):
        self.index_name = index_name
        self.dimensions = dimensions
        self.client = client or redis.Redis(
            host=host,
            port=port,
            db=db,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_keepalive=True,
        )
        self.ping()

    @property
    def _ids_key(self) -> str:
        return f"{self.index_name}:ids"

    def _record_key(self, point_id: str) -> str:
        return f"{self.index_name}:vec:{point_id}"

    def ping(self):
        """Check Redis connection"""
        try:
            self.client.ping()
            logger.info("Redis connection established")
        except redis.ConnectionError as e:
            logger.error(f"Redis connection failed: {e}")
            raise

    def _check_dimensions(self, point: Point):
        if self.dimensions is not None and point.dim != self.dimensions:
            raise ValidationError(
                f"Point {point.id!r} has {point.dim} dimensions, index expects {self.dimensions}"
            )

    @staticmethod
    def _serialize(point: Point) -> str:
        return json.dumps({"id": point.id, "vector": point.vector.tolist(), "metadata": point.metadata})

    @staticmethod
    def _deserialize(serialized: str) -> Point:
        data = json.loads(serialized)
        return Point(id=data["id"], vector=data["vector"], metadata=data.get("metadata") or {})

    def store(self, point: Point) -> bool:
        """Store one record, replacing any previous record with the same id"""
        self._check_dimensions(point)
        try:
            pipe = self.client.pipeline()
            pipe.set(self._record_key(point.id), self._serialize(point))
            pipe.sadd(self._ids_key, point.id)
            pipe.execute()
            logger.debug(f"Stored vector {point.id} in {self.index_name}")
            return True
        except redis.RedisError as e:
            logger.error(f"Failed to store vector {point.id}: {e}")
            return False

    def store_many(self, points: Iterable[Point]) -> int:
        """Store records in one pipeline; returns the number written"""
        points = list(points)
        for point in points:
            self._check_dimensions(point)
        if not points:
            return 0
        try:
            pipe = self.client.pipeline()
            for point in points:
                pipe.set(self._record_key(point.id), self._serialize(point))
                pipe.sadd(self._ids_key, point.id)
            pipe.execute()
            logger.info(f"Stored {len(points)} vectors in {self.index_name}")
            return len(points)
        except redis.RedisError as e:
            logger.error(f"Failed to store vectors: {e}")
            return 0

    def get(self, point_id: str) -> Optional[Point]:
        """Retrieve one record"""
        try:
            serialized = self.client.get(self._record_key(point_id))
            if serialized:
                return self._deserialize(serialized)
            return None
        except redis.RedisError as e:
            logger.error(f"Failed to get vector {point_id}: {e}")
            return None

    def get_all(self) -> List[Point]:
        """All records, ordered by id so clustering input order is reproducible"""
        try:
            ids = sorted(self.client.smembers(self._ids_key))
            if not ids:
                return []
            values = self.client.mget([self._record_key(pid) for pid in ids])
        except redis.RedisError as e:
            logger.error(f"Failed to load vectors from {self.index_name}: {e}")
            return []
        points = [self._deserialize(v) for v in values if v]
        if len(points) != len(ids):
            logger.warning(f"{len(ids) - len(points)} ids in {self.index_name} have no record")
        return points

    def count(self) -> int:
        try:
            return self.client.scard(self._ids_key)
        except redis.RedisError as e:
            logger.error(f"Failed to count vectors in {self.index_name}: {e}")
            return 0

    def delete(self, point_id: str) -> bool:
        try:
            pipe = self.client.pipeline()
            pipe.delete(self._record_key(point_id))
            pipe.srem(self._ids_key, point_id)
            pipe.execute()
            return True
        except redis.RedisError as e:
            logger.error(f"Failed to delete vector {point_id}: {e}")
            return False

    def delete_all(self) -> int:
        """Remove every record in the index; returns the number removed"""
        try:
            ids = list(self.client.smembers(self._ids_key))
            pipe = self.client.pipeline()
            if ids:
                pipe.delete(*[self._record_key(pid) for pid in ids])
            pipe.delete(self._ids_key)
            pipe.execute()
        except redis.RedisError as e:
            logger.error(f"Failed to clear {self.index_name}: {e}")
            return 0
        logger.info(f"Cleared {len(ids)} vectors from {self.index_name}")
        return len(ids)

    def query_similar(
        self,
        query,
        top_k: int = 10,
        metric=DistanceMetric.COSINE,
        threshold: float = -1.0,
    ) -> List[Tuple[Point, float]]:
        """Top-k most similar stored records to `query` (a Point or a raw vector)"""
        return find_similar(query, self.get_all(), metric=metric, threshold=threshold, limit=top_k)
