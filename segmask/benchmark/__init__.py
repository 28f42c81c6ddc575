from __future__ import annotations

from argparse import Namespace

from segmask.benchmark.resample_speed import benchmark_resample_speed

BENCHMARKS = [
    benchmark_resample_speed,
]


def run_benchmarks(*, crop_count: int = 64, runs: int = 3) -> dict[str, dict[str, tuple[float, float]]]:
    results: dict[str, dict[str, tuple[float, float]]] = {}
    for benchmark_fn in BENCHMARKS:
        table_rows = benchmark_fn(crop_count=crop_count, runs=runs)
        if table_rows is not None:
            results[benchmark_fn.__name__.replace("benchmark_", "")] = table_rows
    return results


def _print_results_table(results: dict[str, dict[str, tuple[float, float]]]) -> None:
    rows = [(name, backend, cell) for name, table in results.items() for backend, cell in table.items()]
    name_width = max([len("benchmark")] + [len(r[0]) for r in rows])
    backend_width = max([len("backend")] + [len(r[1]) for r in rows])

    print(f"{'benchmark'.ljust(name_width)}  {'backend'.ljust(backend_width)}  result")
    print(f"{'-' * name_width}  {'-' * backend_width}  {'-' * 24}")
    for name, backend, (median_s, rate) in rows:
        print(f"{name.ljust(name_width)}  {backend.ljust(backend_width)}  {rate:.1f} /s ({median_s:.4f}s)")


def run_benchmark_cli(args: Namespace) -> None:
    results = run_benchmarks(crop_count=int(args.crop_count), runs=int(args.runs))
    _print_results_table(results)
