# Core components: labels, binned score tables, metrics, scheduling and cross-validation

from .action_pipe import ActionPipe, default_worker_count
from .cross_validation import FoldLocalCrossValidator, stratified_kfold_indices
from .errors import (
    CorruptFormatError,
    InvalidArgumentError,
    InvalidStateError,
    NotSupportedError,
    PipelineExecutionError,
)
from .histogram import HistogramTable
from .labels import LABELS, LabeledExample, SentimentLabel
from .metrics import PerfMatrix, f1_avg_extreme_classes
from .serialization import BinaryReader, BinaryWriter
from .tag_distribution import TagDistributionTable, laplace_distribution

__all__ = [
    "ActionPipe",
    "default_worker_count",
    "FoldLocalCrossValidator",
    "stratified_kfold_indices",
    "CorruptFormatError",
    "InvalidArgumentError",
    "InvalidStateError",
    "NotSupportedError",
    "PipelineExecutionError",
    "HistogramTable",
    "LABELS",
    "LabeledExample",
    "SentimentLabel",
    "PerfMatrix",
    "f1_avg_extreme_classes",
    "BinaryReader",
    "BinaryWriter",
    "TagDistributionTable",
    "laplace_distribution",
]
