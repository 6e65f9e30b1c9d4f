#!/usr/bin/env python3
"""
run_pipeline.py
===============
Main entry point for the bloom classification pipeline.

Usage
-----
  # Default run (random forest, defaults from PipelineConfig)
  python run_pipeline.py --data data/count_env.csv

  # Compare every family with Bayesian tuning
  python run_pipeline.py --families mlp random_forest bagged_trees --search bayes

  # Custom config from JSON
  python run_pipeline.py --config experiments/pipeline_config.json

Pipeline Flow
-------------
::

  count_env table  ──→  validate (columns, ascending unique dates)
       │
       ▼
  build features  (per-covariate lags, week of year, label lead +1)
       │
       ▼
  split  (chronological: first 90 % train, rest test)
       │
       ▼
  fit transform chain on train
  (signed log → log → Box-Cox → z-score → dummies → upsample)
       │
       ▼
  for family in families:
      [search] → 5-fold stratified CV → refit on all train
      → evaluate on test → diagnostics → save artefacts
       │
       ▼
  summary_results.csv  +  per-family metadata.json  +  predictions.parquet
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Ensure the project root is on sys.path
PROJECT_ROOT = Path(__file__).resolve().parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from bloompipe.config import ModelFamily, PipelineConfig, SearchMethod
from bloompipe.errors import BloomPipelineError
from bloompipe.experiment import ExperimentRunner


# ======================================================================== #
#  CLI                                                                      #
# ======================================================================== #

def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Harmful algal bloom classification pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a pipeline_config.json file.",
    )
    parser.add_argument(
        "--data",
        type=str,
        default=None,
        help="Observation table (.csv or .parquet); overrides the config.",
    )
    parser.add_argument(
        "--families",
        type=str,
        nargs="+",
        default=None,
        choices=[f.value for f in ModelFamily],
        help="Model families to evaluate. Default = the configured family.",
    )
    parser.add_argument(
        "--search",
        type=str,
        default=None,
        choices=[m.value for m in SearchMethod],
        help="Enable hyperparameter search with this strategy.",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=None,
        help="Directory for artefacts and the summary table.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for upsampling, folds and model fitting.",
    )
    parser.add_argument(
        "--skip-checks",
        action="store_true",
        help="Skip leakage/quality checks for faster iteration.",
    )
    return parser.parse_args(argv)


def build_config(args) -> PipelineConfig:
    if args.config:
        cfg = PipelineConfig.load(args.config)
        print(f"Loaded config from {args.config}")
    else:
        cfg = PipelineConfig()
        print("Using DEFAULT config")

    if args.data:
        cfg.data_path = args.data
    if args.output_dir:
        cfg.output_dir = args.output_dir
    if args.seed is not None:
        cfg.random_seed = args.seed
    if args.families:
        cfg.families = [ModelFamily(f) for f in args.families]
    if args.search:
        cfg.search_config.enabled = True
        cfg.search_config.method = SearchMethod(args.search)
    return cfg


def main(argv=None) -> int:
    args = parse_args(argv)
    cfg = build_config(args)

    print(f"\nPipeline Configuration:")
    print(f"  Data           : {cfg.data_path}")
    print(f"  Output dir     : {cfg.output_dir}")
    print(f"  Threshold      : {cfg.label_config.threshold:g}")
    print(f"  Label shift    : {cfg.label_config.label_shift}")
    print(f"  Lags           : {cfg.lag_config.lags}")
    print(f"  Train fraction : {cfg.split_config.train_fraction}")
    print(f"  Upsample ratio : {cfg.preprocess_config.upsample_ratio}")
    print(f"  Folds          : {cfg.cv_config.n_folds}")
    search = cfg.search_config
    print(f"  Search         : "
          f"{search.method.value if search.enabled else 'off'}")
    print(f"  Families       : {[f.value for f in cfg.resolved_families()]}")
    print(f"  Seed           : {cfg.random_seed}")
    print()

    runner = ExperimentRunner(config=cfg, skip_checks=args.skip_checks)
    try:
        summary = runner.run()
    except BloomPipelineError as err:
        print(f"\n✗ Pipeline failed: {err}", file=sys.stderr)
        return 1

    if not summary.empty:
        print(f"\n{'='*60}")
        print("  SUMMARY")
        print(f"{'='*60}")
        display_cols = [c for c in summary.columns
                        if c in ("family", "cv_accuracy", "test_accuracy",
                                 "test_sensitivity", "test_specificity",
                                 "test_f_measure", "elapsed_s")]
        print(summary[display_cols].to_string(index=False))
        print(f"\nResults saved to: {cfg.output_dir}/summary_results.csv")
    return 0


if __name__ == "__main__":
    sys.exit(main())
