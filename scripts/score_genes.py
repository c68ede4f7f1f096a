#!/usr/bin/env python3
"""Run the liver- vs blood-stage gene scoring pipeline."""

from __future__ import annotations

import argparse

from stagerank.pipeline.run import run_scoring_pipeline


def main() -> int:
    parser = argparse.ArgumentParser(description="stagerank scoring pipeline")
    parser.add_argument(
        "--config",
        default="configs/stagerank_reference.json",
        help="Path to JSON config",
    )
    parser.add_argument("--outdir", default=None, help="Output directory root")
    parser.add_argument("--skip-plots", action="store_true", help="Do not write figures")
    args = parser.parse_args()
    run_scoring_pipeline(
        args.config,
        outdir=args.outdir,
        skip_plots=True if args.skip_plots else None,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
