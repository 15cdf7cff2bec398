#!/usr/bin/env python3
"""
CLI entry point for thumbnail selection.

Usage:
    # Five JPEG thumbnails from a video
    python run_selection.py --video /path/to/video.mp4 --output ./output

    # Three PNG thumbnails, 640px wide, strict quality filtering
    python run_selection.py --video video.mp4 --count 3 --format png --width 640 --strict

    # With custom config file
    python run_selection.py --config config.yaml
"""

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import List

from thumbnail_selection import PipelineConfig, ThumbnailSize
from thumbnail_selection.errors import ThumbnailError
from thumbnail_selection.selector import generate_thumbnails
from thumbnail_selection.types import SelectedThumbnail
from thumbnail_selection.utils.io import ensure_dir, load_config, save_config, setup_logging
from thumbnail_selection.utils.timing import Timer

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Select the best still frames of a video as thumbnails",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Process video file
  python run_selection.py --video video.mp4 --output results/

  # Use config file
  python run_selection.py --config my_config.yaml

  # Fewer, larger PNG thumbnails
  python run_selection.py --video video.mp4 -n 3 --format png --height 720
        """
    )

    # Input options
    input_group = parser.add_argument_group("Input")
    input_group.add_argument(
        "--video", "-v",
        type=str,
        help="Path to input video file",
    )
    input_group.add_argument(
        "--config", "-c",
        type=str,
        help="Path to YAML/JSON config file",
    )

    # Output options
    output_group = parser.add_argument_group("Output")
    output_group.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Output directory (default: output)",
    )
    output_group.add_argument(
        "--count", "-n",
        type=int,
        default=None,
        help="Number of thumbnails, 1-10 (default: 5)",
    )
    output_group.add_argument(
        "--quality",
        type=float,
        default=None,
        help="Encoding quality in [0, 1] (default: 0.8)",
    )
    output_group.add_argument(
        "--format",
        type=str,
        choices=["jpeg", "png"],
        default=None,
        help="Image format (default: jpeg)",
    )
    output_group.add_argument(
        "--width",
        type=int,
        default=None,
        help="Thumbnail width; height follows aspect ratio if not given",
    )
    output_group.add_argument(
        "--height",
        type=int,
        default=None,
        help="Thumbnail height; width follows aspect ratio if not given",
    )

    # Scoring options
    scoring_group = parser.add_argument_group("Scoring")
    scoring_group.add_argument(
        "--strict",
        action="store_true",
        help="Use the strict usability threshold (0.3 instead of 0.1)",
    )
    scoring_group.add_argument(
        "--analysis-scale",
        type=float,
        default=None,
        help="Down-sampling factor in (0, 1] applied before analysis (default: 1.0)",
    )
    scoring_group.add_argument(
        "--no-cache",
        action="store_true",
        help="Disable the statistics cache",
    )

    # Other options
    other_group = parser.add_argument_group("Other")
    other_group.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    other_group.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress output except errors",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> PipelineConfig:
    """Build pipeline config from a config file and CLI overrides."""
    if args.config:
        config = PipelineConfig.from_dict(load_config(args.config))
    else:
        config = PipelineConfig()

    # CLI arguments take precedence over config file values
    if args.video:
        config.video_path = Path(args.video)
    if args.output:
        config.output_dir = Path(args.output)

    option_overrides = {}
    if args.count is not None:
        option_overrides["count"] = args.count
    if args.quality is not None:
        option_overrides["quality"] = args.quality
    if args.format is not None:
        option_overrides["format"] = args.format
    if args.width is not None or args.height is not None:
        option_overrides["size"] = ThumbnailSize(width=args.width, height=args.height)
    if option_overrides:
        config.options = replace(config.options, **option_overrides)

    if args.strict:
        config.scorer.strict_mode = True
    if args.analysis_scale is not None:
        config.scorer.statistics = replace(
            config.scorer.statistics,
            analysis_scale=args.analysis_scale,
        )
    if args.no_cache:
        config.scorer.statistics.cache = False

    config.verbose = args.verbose and not args.quiet
    return config


def save_thumbnails(thumbnails: List[SelectedThumbnail], output_dir: Path) -> None:
    """Write thumbnail images and their metadata to the output directory."""
    thumbs_dir = ensure_dir(output_dir / "thumbnails")

    entries = []
    for i, thumb in enumerate(thumbnails):
        ext = "jpg" if thumb.image.mime_type == "image/jpeg" else "png"
        dst = thumbs_dir / f"thumbnail_{i:02d}_{thumb.timestamp:08.2f}s.{ext}"
        dst.write_bytes(thumb.image.data)
        entries.append({
            "file": dst.name,
            "timestamp": thumb.timestamp,
            "score": thumb.score,
            "width": thumb.width,
            "height": thumb.height,
            "mime_type": thumb.image.mime_type,
            "bytes": len(thumb.image),
        })

    with open(output_dir / "thumbnails.json", "w") as f:
        json.dump({"count": len(entries), "thumbnails": entries}, f, indent=2)

    logger.info(f"Saved {len(entries)} thumbnails to {thumbs_dir}")


@Timer.decorate("thumbnail_selection")
def run(config: PipelineConfig) -> List[SelectedThumbnail]:
    def on_progress(percent: int) -> None:
        logger.debug(f"Progress: {percent}%")

    return generate_thumbnails(config.video_path, config=config, on_progress=on_progress)


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    # Setup logging
    if args.quiet:
        log_level = logging.ERROR
    elif args.verbose:
        log_level = logging.DEBUG
    else:
        log_level = logging.INFO

    setup_logging(level=log_level)

    if not args.video and not args.config:
        logger.error("Must provide --video or --config")
        return 1

    try:
        config = build_config(args)
    except (ThumbnailError, ValueError, TypeError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    if config.video_path is None:
        logger.error("No input video specified. Use --video.")
        return 1

    logger.info("=" * 60)
    logger.info("Thumbnail Selection")
    logger.info("=" * 60)
    logger.info(f"Input: {config.video_path}")
    logger.info(f"Output: {config.output_dir}")
    logger.info(f"Count: {config.options.count} | Format: {config.options.format} | Quality: {config.options.quality}")
    logger.info(f"Strict mode: {config.scorer.strict_mode}")
    logger.info("=" * 60)

    try:
        thumbnails = run(config)
    except (ThumbnailError, FileNotFoundError) as e:
        logger.error(f"Thumbnail selection failed: {e}")
        return 1

    output_dir = ensure_dir(config.output_dir)
    save_thumbnails(thumbnails, output_dir)
    save_config(config.to_dict(), output_dir / "config_used.yaml")

    logger.info(f"Timestamps: {[f'{t.timestamp:.2f}s' for t in thumbnails]}")
    logger.info("Selection completed successfully!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
