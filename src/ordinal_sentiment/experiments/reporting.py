# reporting.py
import math
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from loguru import logger

from ..core.labels import SentimentLabel
from ..core.metrics import PerfMatrix
from ..core.tag_distribution import TagDistributionTable
from ..models.base import TwoPlanePrediction
from ..models.two_plane import DISTR_MAX_VALUE, DISTR_MIN_VALUE

NEG, NEU, POS = SentimentLabel.NEGATIVE, SentimentLabel.NEUTRAL, SentimentLabel.POSITIVE

DISTANCE_PROBS_COLUMNS = [
    "dist1",
    "dist2",
    "neg_count",
    "neu_count",
    "pos_count",
    "neg_prob",
    "neu_prob",
    "pos_prob",
    "majority_label",
]
MIN_MAJORITY_COUNT = 5


def _grid(min_value: float, max_value: float, step: float) -> List[float]:
    n = int(math.floor((max_value - min_value) / step + 1e-9))
    return [round(min_value + i * step, 10) for i in range(n + 1)]


def _majority_label(probs: Tuple[Optional[float], ...]) -> str:
    # first of NEG, NEU, POS holding the highest probability
    known = [(p, label) for p, label in zip(probs, (NEG, NEU, POS)) if p is not None]
    if not known:
        return ""
    best = max(p for p, _ in known)
    return str(next(label for p, label in known if p == best))


def distance_probs_frame(table: TagDistributionTable) -> pd.DataFrame:
    """
    One row per (dist1, dist2) pair walking the 2-D table domain by its bin width.

    Counts and probabilities of bins nobody fell into are left empty; the
    majority label is only filled in when at least 5 examples back the bin.
    """
    rows = []
    steps = _grid(table.min_value, table.max_value, table.bin_width)
    for d in steps:
        for e in steps:
            counts = table.get_counts(d, e)
            probs = table.get_distr_values(d, e)
            neg, neu, pos = counts.get(NEG), counts.get(NEU), counts.get(POS)
            pneg, pneu, ppos = probs.get(NEG), probs.get(NEU), probs.get(POS)
            total = sum(c for c in (neg, neu, pos) if c is not None)
            rows.append(
                {
                    "dist1": d,
                    "dist2": e,
                    "neg_count": neg,
                    "neu_count": neu,
                    "pos_count": pos,
                    "neg_prob": pneg,
                    "neu_prob": pneu,
                    "pos_prob": ppos,
                    "majority_label": _majority_label((pneg, pneu, ppos)) if total >= MIN_MAJORITY_COUNT else "",
                }
            )
    return pd.DataFrame(rows, columns=DISTANCE_PROBS_COLUMNS)


def held_out_distribution_table(
    predictions: Iterable[Tuple[SentimentLabel, TwoPlanePrediction]],
    bin_width: float,
    min_value: float = DISTR_MIN_VALUE,
    max_value: float = DISTR_MAX_VALUE,
) -> TagDistributionTable:
    """2-D label table over the (pos, neg) plane scores of held-out predictions."""
    table = TagDistributionTable.for_labels(2, bin_width, min_value, max_value)
    for actual, prediction in predictions:
        table.add_count(actual, prediction.pos_score, prediction.neg_score)
    table.calculate()
    return table


def write_distance_probs(table: TagDistributionTable, path: Path) -> pd.DataFrame:
    df = distance_probs_frame(table)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False, float_format="%.2f")
    logger.info("Distance probabilities saved to {} ({} rows)", path, len(df))
    return df


def summary_frame(matrices: Dict[str, PerfMatrix], fold_matrices: Optional[Dict[str, Dict[int, PerfMatrix]]] = None) -> pd.DataFrame:
    rows = []
    for model, matrix in matrices.items():
        row = {
            "Model": model,
            "Accuracy": matrix.accuracy(),
            "F1_macro": matrix.macro_f1(),
            "F1_extremes": matrix.f1_avg_extreme_classes(),
            "F1_weighted": matrix.weighted_f1(),
            "Support": matrix.total,
        }
        folds = (fold_matrices or {}).get(model)
        if folds:
            accs = [m.accuracy() for m in folds.values()]
            row["Mean_CV(Acc)"] = float(np.mean(accs))
            row["Std_CV(Acc)"] = float(np.std(accs))
        rows.append(row)
    return pd.DataFrame(rows)


def export_summary_table(matrices: Dict[str, PerfMatrix], save_dir: Path,
                         fold_matrices: Optional[Dict[str, Dict[int, PerfMatrix]]] = None) -> pd.DataFrame:
    save_dir = Path(save_dir)
    save_dir.mkdir(parents=True, exist_ok=True)
    df = summary_frame(matrices, fold_matrices)
    df.to_csv(save_dir / "model_summary.csv", index=False)
    (save_dir / "model_summary.md").write_text(
        df.to_markdown(index=False, floatfmt=".4f"), encoding="utf-8"
    )
    logger.info("Summary table saved to {}", save_dir / "model_summary.csv")
    return df


def plot_confusion_matrices(matrices: Dict[str, PerfMatrix], save_dir: Path) -> Optional[Path]:
    """Summed confusion matrix of every model, one heatmap each."""
    n_models = len(matrices)
    if n_models == 0:
        return None

    fig, axes = plt.subplots(1, n_models, figsize=(5 * n_models, 4))
    if n_models == 1:
        axes = [axes]

    for ax, (model_name, matrix) in zip(axes, matrices.items()):
        tick_labels = [str(l) for l in matrix.labels]
        sns.heatmap(
            matrix.to_array(),
            annot=True,
            fmt="d",
            cmap="Blues",
            ax=ax,
            cbar=True,
            square=True,
            xticklabels=tick_labels,
            yticklabels=tick_labels,
        )
        ax.set_title(f"{model_name}\nConfusion Matrix")
        ax.set_xlabel("Predicted")
        ax.set_ylabel("Actual")

    save_dir = Path(save_dir)
    save_dir.mkdir(parents=True, exist_ok=True)
    out = save_dir / "confusion_matrices.png"
    plt.tight_layout()
    plt.savefig(out, dpi=200, bbox_inches="tight")
    plt.close(fig)
    logger.info("Confusion matrices saved to {}", out)
    return out


def plot_fold_accuracy(fold_matrices: Dict[str, Dict[int, PerfMatrix]], save_dir: Path) -> Optional[Path]:
    if not fold_matrices:
        return None
    models, means, stds = [], [], []
    for model, folds in fold_matrices.items():
        accs = [m.accuracy() for m in folds.values()]
        models.append(model)
        means.append(np.mean(accs) if accs else 0.0)
        stds.append(np.std(accs) if accs else 0.0)
    plt.figure(figsize=(max(7, 1.5 * len(models)), 5))
    plt.bar(models, means, yerr=stds, capsize=6)
    plt.ylabel("Accuracy (mean ± std over folds)")
    plt.title("Model Comparison")
    plt.xticks(rotation=30, ha="right")
    plt.tight_layout()
    save_dir = Path(save_dir)
    save_dir.mkdir(parents=True, exist_ok=True)
    out = save_dir / "model_performance_bar.png"
    plt.savefig(out, dpi=200)
    plt.close()
    return out
