"""Tests for the command line entry points."""

import json
import sys

import numpy as np
import pytest

from common.errors import ConfigurationError
from scripts import cluster_embeddings, export_jsonl

ENV_VARS = [
    "CLUSTER_ALGORITHM",
    "MIN_CLUSTER_SIZE",
    "MIN_SAMPLES",
    "MIN_POINTS",
    "CLUSTER_EPSILON",
    "DISTANCE_METRIC",
    "ALLOW_SINGLE_CLUSTER",
    "CLUSTER_N_JOBS",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def inputs(tmp_path, four_groups_with_outlier):
    ids_path = tmp_path / "ids.txt"
    ids_path.write_text("\n".join(p.id for p in four_groups_with_outlier) + "\n")
    emb_path = tmp_path / "embeddings.npy"
    np.save(emb_path, np.vstack([p.vector for p in four_groups_with_outlier]))
    return ids_path, emb_path


def _run_cluster(monkeypatch, ids_path, emb_path, out_path, *flags):
    argv = [
        "cluster_embeddings.py",
        "--ids", str(ids_path),
        "--embeddings", str(emb_path),
        "--output", str(out_path),
        *flags,
    ]
    monkeypatch.setattr(sys, "argv", argv)
    cluster_embeddings.main()
    return json.loads(out_path.read_text())


def test_flags_complete_env_config(monkeypatch, tmp_path, inputs):
    # env selects dbscan without an epsilon; the flag supplies it
    monkeypatch.setenv("CLUSTER_ALGORITHM", "dbscan")
    ids_path, emb_path = inputs

    report = _run_cluster(
        monkeypatch, ids_path, emb_path, tmp_path / "out" / "report.json",
        "--epsilon", "1.0", "--min-points", "2",
    )

    assert report["config"]["algorithm"] == "dbscan"
    assert report["config"]["epsilon"] == 1.0
    assert [c["size"] for c in report["clusters"]] == [3, 3, 3, 3]
    assert report["noise_ids"] == ["outlier"]
    assert report["statistics"]["count"] == 4


def test_flag_overrides_env_value(monkeypatch, tmp_path, inputs):
    monkeypatch.setenv("MIN_CLUSTER_SIZE", "10")
    ids_path, emb_path = inputs

    report = _run_cluster(monkeypatch, ids_path, emb_path, tmp_path / "report.json", "--min-cluster-size", "2")

    assert report["config"]["min_cluster_size"] == 2
    assert len(report["clusters"]) == 4


def test_invalid_combined_config(monkeypatch, tmp_path, inputs):
    monkeypatch.setenv("CLUSTER_ALGORITHM", "dbscan")
    ids_path, emb_path = inputs

    with pytest.raises(ConfigurationError):
        _run_cluster(monkeypatch, ids_path, emb_path, tmp_path / "report.json")


def test_export_jsonl(monkeypatch, tmp_path, inputs):
    ids_path, emb_path = inputs
    report_path = tmp_path / "report.json"
    _run_cluster(monkeypatch, ids_path, emb_path, report_path)

    out_path = tmp_path / "export.jsonl"
    monkeypatch.setattr(
        sys,
        "argv",
        [
            "export_jsonl.py",
            "--ids", str(ids_path),
            "--embeddings", str(emb_path),
            "--report", str(report_path),
            "--output", str(out_path),
        ],
    )
    export_jsonl.main()

    rows = [json.loads(line) for line in out_path.read_text().splitlines()]
    assert len(rows) == 13
    assert rows[0]["id"] == "g0-0"
    assert [r["cluster_id"] for r in rows[:3]] == [0, 0, 0]
    assert rows[-1] == {"id": "outlier", "embedding": [1000.0, 1000.0], "cluster_id": -1}
