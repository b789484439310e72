#!/usr/bin/env python3
"""
hierclust CLI

Command-line interface for running hierarchical clustering on CSV tables.

Usage:
    python cli.py cluster data.csv                      # Cluster with settings.yaml defaults
    python cli.py cluster data.csv -l average -k 4      # Average linkage, 4-cluster partition
    python cli.py cluster data.csv --id-column name --save
    python cli.py cluster data.csv --json               # Print the run as JSON
    python cli.py runs                                  # List stored runs
    python cli.py show <run_id>                         # Print a stored run
"""

import sys
import time
import argparse
from typing import Optional

from hierclust.config.settings_loader import ConfigManager, Settings
from hierclust.core.clustering_engine import ClusteringEngine
from hierclust.core.base_clustering import ClusteringResult
from hierclust.core.result_builder import cluster_members
from hierclust.storage.result_storage import ResultStorageManager, to_record
from hierclust.storage.table_loader import load_feature_table
from hierclust.utils.advanced_logging import configure_logging, log_exceptions
from hierclust.utils.error_handling import ClusteringServiceError


def print_result(result: ClusteringResult, suggested_k: Optional[int] = None):
    """Print a human-readable run summary."""
    config = result.config
    print(f"✅ Run: {result.run_id}")
    print(f"   Linkage: {config.linkage} | Distance: {config.distance} | Cache: {'on' if config.use_cache else 'off'}")
    print(f"   Rows: {result.n_rows} | Merges: {len(result.fusion_trace)}")
    print(f"   Root distance: {result.root.distance:.6g}")

    if suggested_k is not None:
        print(f"   Suggested cluster count: {suggested_k}")

    if result.partition is None:
        print(f"   ⚠️  No partition for {config.target_cluster_count} clusters")
        return

    print(f"\n📦 Partition ({result.n_clusters} clusters)")
    for label, row_ids in cluster_members(result.partition).items():
        preview = ", ".join(row_ids[:8])
        more = f" ... (+{len(row_ids) - 8})" if len(row_ids) > 8 else ""
        print(f"   {label}: {len(row_ids)} rows [{preview}{more}]")

    if result.quality_metrics:
        print("\n📊 Quality")
        for name, value in result.quality_metrics.items():
            print(f"   {name}: {value:.4f}")

    print("\n📉 Fusion trace (last 10 merges)")
    for step in result.fusion_trace[-10:]:
        print(f"   {step.cluster_count:>6} clusters  @ {step.distance:.6g}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="hierclust - agglomerative hierarchical clustering",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", help="Path to settings.yaml")
    parser.add_argument("--log-level", help="Override log level")

    sub = parser.add_subparsers(dest="command", required=True)

    cluster = sub.add_parser("cluster", help="Cluster the rows of a CSV file")
    cluster.add_argument("path", help="CSV file with a header row")
    cluster.add_argument("--linkage", "-l", help="Linkage (single/average/complete)")
    cluster.add_argument("--distance", "-d", help="Distance (euclidean/manhattan)")
    cluster.add_argument("--clusters", "-k", type=int, help="Target cluster count for the partition")
    cluster.add_argument("--cache", dest="use_cache", action="store_true", default=None, help="Cache distances")
    cluster.add_argument("--no-cache", dest="use_cache", action="store_false", help="Do not cache distances")
    cluster.add_argument("--id-column", help="Column holding row identifiers")
    cluster.add_argument("--columns", nargs="+", help="Feature columns (default: all numeric)")
    cluster.add_argument("--delimiter", default=",", help="Field delimiter")
    cluster.add_argument("--save", action="store_true", help="Persist the run")
    cluster.add_argument("--json", action="store_true", help="Print the full run record as JSON")

    sub.add_parser("runs", help="List stored runs")

    show = sub.add_parser("show", help="Print a stored run")
    show.add_argument("run_id", help="Run identifier")
    show.add_argument("--json", action="store_true", help="Print the full run record as JSON")

    return parser


def run_cluster(args: argparse.Namespace, settings: Settings) -> None:
    clustering = settings.clustering
    columns, vectors = load_feature_table(
        args.path,
        id_column=args.id_column,
        columns=args.columns,
        delimiter=args.delimiter,
    )

    engine = ClusteringEngine()
    started = time.time()
    result = engine.cluster(
        vectors,
        linkage=args.linkage or clustering.linkage.value,
        distance=args.distance or clustering.distance.value,
        target_cluster_count=args.clusters if args.clusters is not None else clustering.target_cluster_count,
        use_cache=args.use_cache if args.use_cache is not None else clustering.use_cache,
        progress_log_interval=clustering.progress_log_interval,
        max_cache_memory_fraction=settings.resources.max_cache_memory_fraction,
    )
    elapsed_ms = (time.time() - started) * 1000

    if args.save or settings.storage.enabled:
        record = ResultStorageManager.from_settings(settings).save_run(
            result, columns=columns, processing_time_ms=elapsed_ms
        )
    else:
        record = to_record(result, columns=columns, processing_time_ms=elapsed_ms)

    if args.json:
        print(record.model_dump_json(indent=2))
    else:
        print_result(result, suggested_k=engine.suggest_cluster_count(result.fusion_trace))
        print(f"\n⏱️  {elapsed_ms:.1f}ms")


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        settings = ConfigManager.load_config(args.config)
    except ClusteringServiceError as e:
        print(f"❌ {e.message}", file=sys.stderr)
        return 1

    configure_logging(
        log_level=args.log_level or settings.logging.level,
        log_format=settings.logging.format,
        log_file=settings.logging.file.path if settings.logging.file.enabled else None,
        service_name=settings.service.name,
        max_size_mb=settings.logging.file.max_size_mb,
        backup_count=settings.logging.file.backup_count,
    )

    try:
        with log_exceptions(operation=args.command):
            if args.command == "cluster":
                run_cluster(args, settings)

            elif args.command == "runs":
                runs = ResultStorageManager.from_settings(settings).list_runs()
                print(f"📋 Runs (Total: {len(runs)})\n")
                for run in runs:
                    print(
                        f"   {run.run_id}  {run.created_at}  {run.linkage}/{run.distance}  "
                        f"rows={run.n_rows}  clusters={run.n_clusters}"
                    )

            elif args.command == "show":
                storage = ResultStorageManager.from_settings(settings)
                if args.json:
                    print(storage.load_record(args.run_id).model_dump_json(indent=2))
                else:
                    print_result(storage.load_run(args.run_id))

    except ClusteringServiceError as e:
        print(f"❌ {e.error_code}: {e.message}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
