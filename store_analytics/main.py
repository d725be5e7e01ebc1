"""
Command Line Entry Point

    store-analytics generate --out data/raw
    store-analytics run --data data/raw --out data/curated
"""

import argparse
import sys
from datetime import date
from typing import List, Optional

import structlog

from store_analytics.config import Settings, WindowSettings, get_settings
from store_analytics.config.logging import configure_logging
from store_analytics.data.generators import DataGenerator
from store_analytics.ingestion.batch_loader import BatchLoader, DatasetLoadError, FileFormat
from store_analytics.transformation.transformers import ReportingPipeline

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="store-analytics",
        description="Store sales analytics reporting pipeline",
    )
    parser.add_argument("--log-level", help="Override LOG_LEVEL")
    parser.add_argument("--log-format", choices=["json", "console"], help="Log renderer")
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Write a synthetic regions/stores/sales dataset")
    generate.add_argument("--out", help="Output directory (default: DATA_RAW_PATH)")
    generate.add_argument("--regions", type=int, default=8, help="Number of regions")
    generate.add_argument("--stores", type=int, default=120, help="Number of stores")
    generate.add_argument("--days", type=int, default=365, help="Days of sales history")
    generate.add_argument("--end-date", type=date.fromisoformat, default=date(2024, 12, 31), help="Last sales date")
    generate.add_argument("--seed", type=int, default=42, help="Random seed")

    run = subparsers.add_parser("run", help="Run the pipeline and write the report bundles")
    run.add_argument("--data", help="Input directory (default: DATA_RAW_PATH)")
    run.add_argument("--out", help="Bundle directory (default: DATA_CURATED_PATH)")
    run.add_argument("--format", choices=[f.value for f in FileFormat], help="Input file format")
    run.add_argument("--window-days", type=int, help="Trailing window length in days")
    run.add_argument("--reference-date", type=date.fromisoformat, help="Window end date (YYYY-MM-DD)")

    return parser


def settings_with_overrides(args: argparse.Namespace) -> Settings:
    """Apply window overrides from the command line on top of the environment settings"""
    settings = get_settings()
    overrides = {}
    if args.window_days is not None:
        overrides["window_days"] = args.window_days
    if args.reference_date is not None:
        overrides["reference_date"] = args.reference_date
    if not overrides:
        return settings

    window = WindowSettings(**{**settings.window.model_dump(), **overrides})
    return settings.model_copy(update={"window": window})


def cmd_generate(args: argparse.Namespace) -> int:
    generator = DataGenerator(output_dir=args.out, seed=args.seed)
    generator.generate_all(
        n_regions=args.regions,
        n_stores=args.stores,
        days=args.days,
        end_date=args.end_date,
    )
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    settings = settings_with_overrides(args)
    loader = BatchLoader(FileFormat(args.format) if args.format else None)

    try:
        dataset = loader.load_dataset(args.data)
    except DatasetLoadError as e:
        logger.error("Input could not be loaded", error=str(e))
        return 1

    pipeline = ReportingPipeline(settings, output_path=args.out)
    result = pipeline.run(dataset)
    paths = pipeline.write(result)

    logger.info("Bundles written", bundles=len(paths), output=str(pipeline.output_path))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, args.log_format)

    commands = {
        "generate": cmd_generate,
        "run": cmd_run,
    }
    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
