#!/usr/bin/env python
import argparse
import json
import logging
import pathlib
from typing import List

import numpy as np

from clustering import ClusterEngine, cluster_statistics
from clustering.engine import clusters_from_assignment
from common import ClusteringConfigModel, ClusteringReportModel, Point
from common.config import clustering_config_from_env

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def read_lines(path: str) -> List[str]:
    return [line.strip() for line in pathlib.Path(path).read_text().splitlines() if line.strip()]


def main():
    parser = argparse.ArgumentParser(description="Cluster cached embeddings and write a JSON report.")
    parser.add_argument("--ids", required=True, help="Text file with one document id per line.")
    parser.add_argument("--embeddings", required=True, help="Path to .npy embeddings aligned with --ids.")
    parser.add_argument("--output", required=True, help="Where to write the clustering report JSON.")
    parser.add_argument("--algorithm", choices=["hdbscan", "dbscan"], help="Overrides CLUSTER_ALGORITHM.")
    parser.add_argument("--metric", choices=["euclidean", "cosine"], help="Overrides DISTANCE_METRIC.")
    parser.add_argument("--min-cluster-size", type=int)
    parser.add_argument("--min-samples", type=int)
    parser.add_argument("--min-points", type=int)
    parser.add_argument("--epsilon", type=float)
    parser.add_argument("--n-jobs", type=int)
    args = parser.parse_args()

    ids = read_lines(args.ids)
    embeddings = np.load(args.embeddings)
    if embeddings.ndim != 2 or embeddings.shape[0] != len(ids):
        raise ValueError("embeddings must be 2D with one row per id")

    overrides = {
        "algorithm": args.algorithm,
        "metric": args.metric,
        "min_cluster_size": args.min_cluster_size,
        "min_samples": args.min_samples,
        "min_points": args.min_points,
        "epsilon": args.epsilon,
        "n_jobs": args.n_jobs,
    }
    config = clustering_config_from_env(overrides)

    points = [Point(id=pid, vector=vec) for pid, vec in zip(ids, embeddings)]
    engine = ClusterEngine(config)
    assignment = engine.assignments(points)
    clusters = clusters_from_assignment(points, assignment)
    stats = cluster_statistics(clusters)

    report = ClusteringReportModel(
        config=ClusteringConfigModel.from_config(config),
        clusters=[c.to_model() for c in clusters],
        noise_ids=assignment.noise_ids(),
        statistics=stats.to_dict(),
    )
    out_path = pathlib.Path(args.output)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps(report.model_dump(mode="json"), indent=2))
    logger.info(
        f"Wrote {stats.count} clusters ({stats.total_points} points, "
        f"{len(report.noise_ids)} noise) to {out_path}"
    )


if __name__ == "__main__":
    main()
