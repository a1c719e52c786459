# Experiments: configuration, cross-validation runs and reporting

from .config import DEFAULT_MODELS, ValidationConfig, load_config
from .reporting import (
    distance_probs_frame,
    export_summary_table,
    held_out_distribution_table,
    plot_confusion_matrices,
    write_distance_probs,
)
from .validation import ValidationExperiment

__all__ = [
    "DEFAULT_MODELS",
    "ValidationConfig",
    "load_config",
    "distance_probs_frame",
    "export_summary_table",
    "held_out_distribution_table",
    "plot_confusion_matrices",
    "write_distance_probs",
    "ValidationExperiment",
]
