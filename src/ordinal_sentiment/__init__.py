"""
Ordinal 3-class sentiment classification with calibrated binary-classifier ensembles.

Key modules:
- core.histogram / core.tag_distribution: binned score tables
- core.action_pipe: concurrent stage pipeline (join / pipe)
- core.cross_validation: fold-parallel cross-validation with a fold-local feature space
- models.two_plane: two-plane classifier with bias calibration
- models.voting: voting and bin-voting ensembles
- experiments.validation: experiment orchestration and reporting
"""

__version__ = "0.1.0"
