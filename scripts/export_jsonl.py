#!/usr/bin/env python
import argparse
import json
import pathlib
from typing import Dict, List

import numpy as np

from common.models import NOISE_LABEL


def read_lines(path: str) -> List[str]:
    return [line.strip() for line in pathlib.Path(path).read_text().splitlines() if line.strip()]


def load_labels(report_path: str) -> Dict[str, int]:
    """Map document id -> cluster id from a clustering report; noise ids map to -1."""
    with open(report_path, "r") as f:
        report = json.load(f)
    labels = {pid: NOISE_LABEL for pid in report.get("noise_ids", [])}
    for cluster in report["clusters"]:
        for pid in cluster["member_ids"]:
            labels[pid] = int(cluster["cluster_id"])
    return labels


def main():
    parser = argparse.ArgumentParser(description="Export embeddings + cluster assignments to JSONL.")
    parser.add_argument("--ids", required=True, help="Text file with one document id per line.")
    parser.add_argument("--embeddings", required=True, help="Path to .npy embeddings aligned with --ids.")
    parser.add_argument("--report", required=True, help="Clustering report JSON from cluster_embeddings.py.")
    parser.add_argument("--output", required=True, help="Output JSONL path.")
    args = parser.parse_args()

    ids = read_lines(args.ids)
    embeddings = np.load(args.embeddings)
    if embeddings.shape[0] != len(ids):
        raise ValueError("embeddings rows must match number of ids")

    labels = load_labels(args.report)

    out_path = pathlib.Path(args.output)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with out_path.open("w") as f:
        for pid, emb in zip(ids, embeddings):
            entry = {
                "id": pid,
                "embedding": emb.tolist(),
                "cluster_id": labels.get(pid, NOISE_LABEL),
            }
            f.write(json.dumps(entry) + "\n")


if __name__ == "__main__":
    main()
