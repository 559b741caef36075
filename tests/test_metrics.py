from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from outlier_api.main import create_app
from outlier_api.metrics import ServiceMetrics, _latency_bucket


@pytest.fixture
def client() -> TestClient:
    return TestClient(create_app())


@pytest.mark.parametrize(
    ("latency_ms", "bucket"),
    [(-3, "le_1ms"), (0.5, "le_1ms"), (10, "le_10ms"), (99.9, "le_100ms"), (20000, "gt_10000ms")],
)
def test_latency_buckets(latency_ms: float, bucket: str) -> None:
    assert _latency_bucket(latency_ms) == bucket


def test_snapshot_counts() -> None:
    metrics = ServiceMetrics()
    metrics.record_calculation("json", 10, 0.4)
    metrics.record_calculation("file", 5, 250.0)
    metrics.record_http_status(200)
    metrics.record_error("EMPTY_DATASET")

    snapshot = metrics.snapshot()
    assert snapshot["calculation_counts"] == {"json": 1, "file": 1}
    assert snapshot["values_processed"] == 15
    assert snapshot["latency_ms_buckets"] == {"le_1ms": 1, "le_1000ms": 1}
    assert snapshot["http_status_counts"] == {"200": 1}
    assert snapshot["error_counts"] == {"EMPTY_DATASET": 1}


def test_metrics_endpoint_exposes_counters(client: TestClient) -> None:
    assert client.get("/health").status_code == 200
    ok = client.post("/calculate", json={"values": [1, 2, 3], "percentile": 50})
    assert ok.status_code == 200

    response = client.get("/metrics")
    assert response.status_code == 200
    payload = response.json()
    assert payload["calculation_counts"] == {"json": 1}
    assert payload["values_processed"] == 3
    assert int(payload["http_status_counts"]["200"]) >= 2
    assert sum(payload["latency_ms_buckets"].values()) == 1
    assert payload["error_counts"] == {}


def test_metrics_track_rejections_by_error_code(client: TestClient) -> None:
    assert client.post("/calculate", json={"values": []}).status_code == 400
    assert client.post("/calculate", json={"values": [1], "percentile": 101}).status_code == 400
    assert client.post("/calculate", json={}).status_code == 400

    payload = client.get("/metrics").json()
    assert payload["error_counts"] == {
        "EMPTY_DATASET": 1,
        "PERCENTILE_OUT_OF_RANGE": 1,
        "INVALID_REQUEST": 1,
    }
    assert payload["http_status_counts"]["400"] == 3
    assert payload["calculation_counts"] == {}


def test_file_uploads_are_counted_separately(client: TestClient) -> None:
    response = client.post(
        "/calculate/file",
        files={"file": ("data.csv", b"value\n1\n2\n", "text/csv")},
    )
    assert response.status_code == 200
    assert client.get("/metrics").json()["calculation_counts"] == {"file": 1}


def test_prometheus_metrics_endpoint(client: TestClient) -> None:
    client.post("/calculate", json={"values": [1, 2, 3]})
    client.post("/calculate", json={"values": []})

    response = client.get("/metrics/prometheus")
    assert response.status_code == 200
    assert 'outlier_calculation_total{source="json"} 1.0' in response.text
    assert "outlier_values_processed_total 3.0" in response.text
    assert 'outlier_error_total{error_code="EMPTY_DATASET"} 1.0' in response.text
    assert "outlier_http_status_total" in response.text
    assert "outlier_calculation_latency_ms_bucket" in response.text


def test_separate_apps_do_not_share_metrics() -> None:
    first = TestClient(create_app())
    second = TestClient(create_app())
    first.post("/calculate", json={"values": [1.0]})
    assert second.get("/metrics").json()["calculation_counts"] == {}
