"""
treebatch - Batch phylogenetic inference.

Run IQ-TREE once per unit directory, skip finished work, get one summary.
"""

from treebatch.batch import run_batch
from treebatch.config import BatchConfig, BatchConfigError, load_config
from treebatch.models import Outcome, RunSummary, Unit

__version__ = "0.1.0"
__all__ = [
    "BatchConfig",
    "BatchConfigError",
    "Outcome",
    "RunSummary",
    "Unit",
    "__version__",
    "load_config",
    "run_batch",
]
