"""
Evaluation Scripts
==================
Quality evaluation of the analysis pipeline outputs.
"""

from .eval_data_pipeline import run_evaluation

__all__ = ['run_evaluation']
