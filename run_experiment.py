#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Unified runner for the ordinal sentiment cross-validation experiments.

- Run from project root (after ``pip install -e .``).
- Reads an optional JSON config and patches it from the command line.
- Runs every selected model kind through the same stratified folds and writes
  summary tables, confusion matrices and distance-probability CSVs to
  --results-dir.

Example:
    python run_experiment.py --csv data/tweets_clean.csv --models two_plane two_plane_calibrated --folds 5
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger

from ordinal_sentiment import logger as log_setup
from ordinal_sentiment.core.errors import PipelineExecutionError
from ordinal_sentiment.experiments.config import ValidationConfig, load_config
from ordinal_sentiment.experiments.validation import ValidationExperiment
from ordinal_sentiment.models.models_registry import ModelKind

ROOT = Path(__file__).parent.resolve()


# -----------------------------
# Utilities
# -----------------------------
def _resolve_csv(data_dir: Optional[Path], csv_path: Optional[Path]) -> Optional[Path]:
    """Locate the labelled CSV from --csv or --data-dir/sentiment_clean.csv."""
    if csv_path is not None:
        p = csv_path if csv_path.is_absolute() else (ROOT / csv_path)
        if not p.exists():
            raise FileNotFoundError(f"CSV not found: {p}")
        return p
    if data_dir is None:
        return None
    p = data_dir / "sentiment_clean.csv"
    if not p.exists():
        raise FileNotFoundError(
            f"Cannot find {p}. Place sentiment_clean.csv under --data-dir "
            f"or pass --csv explicitly."
        )
    return p


def _cli_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    csv_path = _resolve_csv(args.data_dir, args.csv)
    return {
        "csv_path": str(csv_path) if csv_path is not None else None,
        "text_column": args.text_column,
        "label_column": args.label_column,
        "limit": args.limit,
        "num_folds": args.folds,
        "seed": args.seed,
        "workers": args.workers,
        "models": args.models,
        "results_dir": str(args.results_dir) if args.results_dir is not None else None,
        "log_level": args.log_level,
        "log_dir": str(args.log_dir) if args.log_dir is not None else None,
        "abort_on_error": False if args.keep_going else None,
        "plot": False if args.no_plots else None,
    }


def build_config(args: argparse.Namespace) -> ValidationConfig:
    overrides = _cli_overrides(args)
    if args.config is not None:
        return load_config(args.config, **overrides)
    return ValidationConfig(**{k: v for k, v in overrides.items() if v is not None})


def parse_args(argv=None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Run ordinal sentiment cross-validation from project root")
    ap.add_argument("--config", type=Path, default=None, help="JSON file with ValidationConfig fields")
    ap.add_argument("--data-dir", type=Path, default=None, help="Directory containing sentiment_clean.csv")
    ap.add_argument("--csv", type=Path, default=None, help="Explicit path to the labelled CSV")
    ap.add_argument("--text-column", default=None)
    ap.add_argument("--label-column", default=None)
    ap.add_argument("--limit", type=int, default=None, help="Use only the first N rows")
    ap.add_argument("--results-dir", type=Path, default=None)
    ap.add_argument("--models", nargs="+", choices=[k.value for k in ModelKind], default=None)
    ap.add_argument("--folds", type=int, default=None)
    ap.add_argument("--seed", type=int, default=None)
    ap.add_argument("--workers", type=int, default=None, help="Fold workers, 0 runs the folds sequentially")
    ap.add_argument("--keep-going", action="store_true", help="Do not abort the remaining folds after a failure")
    ap.add_argument("--no-plots", action="store_true")
    ap.add_argument("--log-level", default=None)
    ap.add_argument("--log-dir", type=Path, default=None)
    return ap.parse_args(argv)


# -----------------------------
# Main
# -----------------------------
def main(argv=None) -> int:
    args = parse_args(argv)
    config = build_config(args)
    log_setup.configure(level=config.log_level, log_dir=config.log_dir)

    print("============================================================")
    print("Ordinal sentiment cross-validation")
    print("============================================================")
    print(f"Data: {config.csv_path}")
    print(f"Folds: {config.num_folds}, Seed: {config.seed}, Workers: {config.workers}")
    print(f"Models: {config.models}")

    experiment = ValidationExperiment(config)
    try:
        experiment.run()
    except PipelineExecutionError as e:
        logger.opt(exception=e.__cause__ or e).error("Cross-validation failed: {}", e)
        return 1
    except FileNotFoundError as e:
        logger.error(str(e))
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
