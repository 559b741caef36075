from __future__ import annotations

import argparse
import time

import httpx

from outlier_core.errors import OutlierError
from outlier_core.models import CalculateRequest, CalculateResponse
from outlier_core.percentile import compute_percentile

DEFAULT_NUM_VALUES = 1_000_000
DEFAULT_API_URL = "http://localhost:3000"
LIBRARY_PERCENTILES = (95.0, 90.0, 99.0, 75.0, 50.0)
MATCH_TOLERANCE = 0.0001

# glibc LCG parameters
LCG_A = 1103515245
LCG_C = 12345
LCG_M = 2**31
LCG_SEED = 42


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Volume test for percentile calculation through the library and the API"
    )
    parser.add_argument(
        "--count",
        type=int,
        default=DEFAULT_NUM_VALUES,
        help="Number of generated values",
    )
    parser.add_argument(
        "--with-api",
        action="store_true",
        help="Also run the percentiles through POST /calculate (start the server first)",
    )
    parser.add_argument(
        "--api-url",
        default=DEFAULT_API_URL,
        help="Base URL of a running outlier API",
    )
    return parser.parse_args()


def generate_values(count: int, seed: int = LCG_SEED) -> list[float]:
    """Deterministic pseudo-random values in [0, 10000)."""
    values: list[float] = []
    state = seed
    for _ in range(count):
        state = (LCG_A * state + LCG_C) % LCG_M
        values.append((state / LCG_M) * 10000.0)
    return values


def run_library_test(values: list[float], percentile: float) -> float | None:
    start = time.perf_counter()
    try:
        result = compute_percentile(values, percentile)
    except OutlierError as exc:
        print(f"  Error calculating P{percentile:g}: {exc}\n")
        return None
    elapsed = time.perf_counter() - start
    print(f"  P{percentile:g}: {result:.4f}")
    print(f"  Calculation time: {elapsed * 1000:.2f}ms")
    print(f"  Throughput: {len(values) / elapsed:.2f} values/sec\n")
    return result


def check_server_health(client: httpx.Client, base_url: str) -> bool:
    try:
        response = client.get(f"{base_url}/health", timeout=5.0)
    except httpx.HTTPError:
        return False
    return response.is_success


def run_api_test(
    client: httpx.Client, base_url: str, values: list[float], percentile: float
) -> float | None:
    request = CalculateRequest(values=values, percentile=percentile)
    start = time.perf_counter()
    try:
        response = client.post(
            f"{base_url}/calculate",
            json=request.model_dump(),
            timeout=120.0,
        )
    except httpx.HTTPError as exc:
        print(f"  Request error for P{percentile:g}: {exc}\n")
        return None
    if not response.is_success:
        print(f"  API error for P{percentile:g}: HTTP {response.status_code}")
        print(f"  Response: {response.text}\n")
        return None
    payload = CalculateResponse.model_validate_json(response.content)
    elapsed = time.perf_counter() - start
    print(f"  P{percentile:g}: {payload.result:.4f}")
    print(f"  Calculation time: {elapsed * 1000:.2f}ms")
    print(f"  Throughput: {len(values) / elapsed:.2f} values/sec")
    print(f"  Response count: {payload.count}\n")
    return payload.result


def verify_results(label: str, library_result: float, api_result: float) -> bool:
    diff = abs(library_result - api_result)
    if diff < MATCH_TOLERANCE:
        print(f"  OK {label} results match (diff: {diff:.6f})\n")
        return True
    print(
        f"  MISMATCH {label}: library {library_result:.4f}, "
        f"API {api_result:.4f}, diff {diff:.6f}\n"
    )
    return False


def banner(title: str) -> None:
    print("=" * 49)
    print(f"  {title}")
    print("=" * 49)


def run() -> int:
    args = parse_args()
    if args.count <= 0:
        raise ValueError("--count must be > 0")

    banner(f"Outlier Volume Test - {args.count} Values")
    start = time.perf_counter()
    values = generate_values(args.count)
    print(f"Generated {len(values)} values in {(time.perf_counter() - start) * 1000:.2f}ms\n")

    print("Dataset Statistics:")
    print(f"  Count: {len(values)}")
    print(f"  Min:   {min(values):.4f}")
    print(f"  Max:   {max(values):.4f}")
    print(f"  Mean:  {sum(values) / len(values):.4f}\n")

    banner("Direct Library Tests")
    library_results: dict[float, float | None] = {}
    for percentile in LIBRARY_PERCENTILES:
        print(f"Testing P{percentile:g} (library)")
        library_results[percentile] = run_library_test(values, percentile)

    if not args.with_api:
        print("API tests skipped. Run with --with-api to include.")
        print("Start the server first: outlier --serve")
        return 0

    banner("API Endpoint Tests")
    print(f"  Target: {args.api_url}\n")
    mismatches = 0
    with httpx.Client() as client:
        if not check_server_health(client, args.api_url):
            print("Server is not available. Start it with: outlier --serve")
            return 1
        for percentile in LIBRARY_PERCENTILES:
            print(f"Testing P{percentile:g} (API)")
            api_result = run_api_test(client, args.api_url, values, percentile)
            library_result = library_results[percentile]
            if api_result is None or library_result is None:
                mismatches += 1
                continue
            if not verify_results(f"P{percentile:g}", library_result, api_result):
                mismatches += 1

    banner("Volume Test Complete")
    return 1 if mismatches else 0


if __name__ == "__main__":
    raise SystemExit(run())
