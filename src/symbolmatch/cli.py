#!/usr/bin/env python3
"""CLI interface for symbolmatch."""

import argparse
import logging
import sys
from pathlib import Path

from .config import MatchConfig
from .matcher import SymbolMatcher
from .preprocessing import load_image

_IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".bmp", ".tif", ".tiff", ".webp"}


def _build_config(args: argparse.Namespace) -> MatchConfig:
    config = MatchConfig.simple() if args.simple else MatchConfig()
    config.binary_cutoff = args.cutoff
    config.ratio_threshold = args.ratio
    config.fast_threshold = args.fast_threshold
    config.parallel = args.parallel
    return config


def _compare(args: argparse.Namespace) -> int:
    img1 = load_image(args.image1)
    img2 = load_image(args.image2)

    breakdown = SymbolMatcher(_build_config(args)).match(img1, img2)
    if args.json:
        print(breakdown.model_dump_json(indent=2))
    else:
        print(breakdown.summary())
    return 0


def _rank(args: argparse.Namespace) -> int:
    ref_dir = Path(args.references)
    if not ref_dir.is_dir():
        print(f"Error: Reference folder not found: {ref_dir}", file=sys.stderr)
        return 1

    query = load_image(args.query)
    ref_paths = sorted(p for p in ref_dir.iterdir() if p.suffix.lower() in _IMAGE_SUFFIXES)
    if not ref_paths:
        print(f"Error: No images found in {ref_dir}", file=sys.stderr)
        return 1
    references = {p.name: load_image(p) for p in ref_paths}

    config = _build_config(args)
    config.log_breakdown = False
    report = SymbolMatcher(config).rank(
        query, references, query_name=Path(args.query).name, top_n=args.top_n
    )

    for position, result in enumerate(report.results, start=1):
        print(f"{position:3d}. {result.b}: {result.similarity:.4f}")

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(report.model_dump_json(indent=2))
        logging.getLogger(__name__).info(f"Results saved to {output_path}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Argument parser with ``compare`` and ``rank`` sub-commands."""
    parser = argparse.ArgumentParser(
        description="Score the similarity of hand-drawn symbol images",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument("--simple", action="store_true",
                        help="Use only shape and feature similarity (0.5/0.5)")
    parser.add_argument("--parallel", action="store_true",
                        help="Evaluate metrics on worker threads")
    parser.add_argument("--cutoff", type=int, default=127,
                        help="Intensity below which pixels count as ink")
    parser.add_argument("--ratio", type=float, default=0.7,
                        help="Ratio test threshold for feature matching")
    parser.add_argument("--fast-threshold", type=int, default=10,
                        help="FAST corner intensity threshold")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    compare = sub.add_parser("compare", help="Compare two images",
                             formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    compare.add_argument("image1", type=str, help="Path to first image")
    compare.add_argument("image2", type=str, help="Path to second image")
    compare.add_argument("--json", action="store_true",
                         help="Print the breakdown as JSON")
    compare.set_defaults(handler=_compare)

    rank = sub.add_parser("rank", help="Rank a folder of references against a query",
                          formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    rank.add_argument("query", type=str, help="Path to query image")
    rank.add_argument("references", type=str, help="Folder of reference images")
    rank.add_argument("--top-n", type=int, default=None,
                      help="Number of best matches to report (default: all)")
    rank.add_argument("--output", type=str, default=None,
                      help="Write ranking results to this JSON file")
    rank.set_defaults(handler=_rank)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for symbolmatch.

    Args:
        argv: Argument list (defaults to sys.argv[1:]).

    Returns:
        Process exit status.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    # Configure logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S"
    )

    try:
        return args.handler(args)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
