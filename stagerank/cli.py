"""Command-line interface for stagerank."""

from __future__ import annotations

import argparse
from typing import Iterable

from stagerank.config import load_json_config, parse_score_config


def score_main(argv: Iterable[str] | None = None) -> int:
    """Score genes from a JSON config.

    Args:
        argv: Command-line arguments (if None, uses sys.argv).

    Returns:
        Exit code (0 for success).
    """
    parser = argparse.ArgumentParser(description="Score liver- vs blood-stage genes")
    parser.add_argument("--config", required=True, help="Path to JSON config")
    parser.add_argument("--outdir", default=None, help="Output directory root (overrides config)")
    parser.add_argument("--skip-plots", action="store_true", help="Do not write figures")
    args = parser.parse_args(list(argv) if argv is not None else None)

    from stagerank.pipeline.run import run_scoring_pipeline

    out = run_scoring_pipeline(
        args.config,
        outdir=args.outdir,
        skip_plots=True if args.skip_plots else None,
    )
    diag = out["result"].diagnostics
    print(f"n_scored={diag.n_scored}")
    print(f"failed_pairs={','.join(sorted(diag.failed_pairs)) or '-'}")
    print(f"scores={out['paths']['scores']}")
    return 0


def check_main(argv: Iterable[str] | None = None) -> int:
    """Validate a config without reading any table.

    Args:
        argv: Command-line arguments (if None, uses sys.argv).

    Returns:
        Exit code (0 when the config is valid).
    """
    parser = argparse.ArgumentParser(description="Validate a stagerank config")
    parser.add_argument("--config", required=True, help="Path to JSON config")
    args = parser.parse_args(list(argv) if argv is not None else None)

    config = parse_score_config(load_json_config(args.config))
    print(f"reference_species={config.reference_species}")
    print(f"datasets={len(config.datasets)}")
    print(f"stages={','.join(s.species for s in config.stages)}")
    print(f"comparisons={len(config.comparisons)}")
    return 0


def main(argv: Iterable[str] | None = None) -> int:
    """Main CLI entry point.

    Args:
        argv: Command-line arguments (if None, uses sys.argv).

    Returns:
        Exit code.
    """
    parser = argparse.ArgumentParser(description="stagerank CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("score", help="Run the scoring pipeline")
    sub.add_parser("check", help="Validate a config file")

    args, remainder = parser.parse_known_args(list(argv) if argv is not None else None)
    if args.command == "score":
        return score_main(remainder)
    if args.command == "check":
        return check_main(remainder)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
