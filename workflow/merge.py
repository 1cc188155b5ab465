"""
Cluster-then-merge workflow for embedded documents.

Documents are clustered by the engine; each cluster with at least
`merge_min_size` members is collapsed into one document by a summarizer,
members of smaller clusters and noise documents pass through unchanged.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

from pydantic import BaseModel

from clustering.engine import ClusterEngine, cluster_statistics, clusters_from_assignment
from clustering.merge_prune import split_by_size
from common.models import (
    Cluster,
    ClusteringConfig,
    ClusteringConfigModel,
    ClusteringReportModel,
    ClusterStatistics,
    Point,
)

logger = logging.getLogger(__name__)


class Summarizer(Protocol):
    """Protocol for a model that consolidates one cluster's texts."""

    def merge(self, texts: List[str]) -> str:
        ...


class MergedDocumentModel(BaseModel):
    """Pydantic model for one output document"""
    content: str
    source_ids: List[str]
    cluster_id: Optional[int] = None
    merged: bool = False
    metadata: Dict[str, Any] = {}


class MergeReportModel(BaseModel):
    documents: List[MergedDocumentModel]
    clustering: ClusteringReportModel
    input_count: int
    output_count: int
    reduction: float


@dataclass
class MergeReport:
    documents: List[MergedDocumentModel]
    clusters: List[Cluster]
    noise_ids: List[str]
    statistics: ClusterStatistics
    input_count: int
    config: ClusteringConfig

    @property
    def output_count(self) -> int:
        return len(self.documents)

    @property
    def reduction(self) -> float:
        """Fraction of input documents removed by merging."""
        if self.input_count == 0:
            return 0.0
        return 1.0 - self.output_count / self.input_count

    def to_model(self) -> MergeReportModel:
        return MergeReportModel(
            documents=self.documents,
            clustering=ClusteringReportModel(
                config=ClusteringConfigModel.from_config(self.config),
                clusters=[c.to_model() for c in self.clusters],
                noise_ids=self.noise_ids,
                statistics=self.statistics.to_dict(),
            ),
            input_count=self.input_count,
            output_count=self.output_count,
            reduction=self.reduction,
        )


def _content(point: Point) -> str:
    return str(point.metadata.get("content", ""))


def _passthrough(point: Point, cluster_id: Optional[int] = None) -> MergedDocumentModel:
    metadata = {k: v for k, v in point.metadata.items() if k != "content"}
    return MergedDocumentModel(
        content=_content(point),
        source_ids=[point.id],
        cluster_id=cluster_id,
        merged=False,
        metadata=metadata,
    )


class DocumentMerger:
    """Cluster embedded documents and merge the large clusters."""

    def __init__(
        self,
        summarizer: Summarizer,
        engine: Optional[ClusterEngine] = None,
        merge_min_size: int = 3,
    ):
        if merge_min_size < 1:
            raise ValueError("merge_min_size must be >= 1.")
        self.summarizer = summarizer
        self.engine = engine or ClusterEngine()
        self.merge_min_size = merge_min_size

    def run(self, points: Sequence[Point], config: Optional[ClusteringConfig] = None) -> MergeReport:
        points = list(points)
        config = (config or self.engine.config).validated()
        assignment = self.engine.assignments(points, config)
        clusters = clusters_from_assignment(points, assignment)
        noise_ids = set(assignment.noise_ids())

        to_merge, small = split_by_size(clusters, self.merge_min_size)
        logger.info(
            f"Merging {len(to_merge)} clusters with >= {self.merge_min_size} documents; "
            f"{len(small)} small clusters and {len(noise_ids)} noise documents kept as-is"
        )

        documents: List[MergedDocumentModel] = []
        for done, cluster in enumerate(to_merge, start=1):
            merged_text = self.summarizer.merge([_content(p) for p in cluster.points])
            documents.append(
                MergedDocumentModel(
                    content=merged_text,
                    source_ids=cluster.ids,
                    cluster_id=cluster.cluster_id,
                    merged=True,
                )
            )
            logger.info(
                f"[{done}/{len(to_merge)}] Merged cluster {cluster.cluster_id} ({cluster.size} docs -> 1)"
            )

        for cluster in small:
            documents.extend(_passthrough(p, cluster.cluster_id) for p in cluster.points)
        documents.extend(_passthrough(p) for p in points if p.id in noise_ids)

        report = MergeReport(
            documents=documents,
            clusters=clusters,
            noise_ids=[p.id for p in points if p.id in noise_ids],
            statistics=cluster_statistics(clusters),
            input_count=len(points),
            config=config,
        )
        logger.info(
            f"Merged {report.input_count} documents into {report.output_count} "
            f"({report.reduction:.1%} reduction)"
        )
        return report
