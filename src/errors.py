"""
Error Taxonomy
==============
Exceptions raised across the analysis pipeline.

- DataIntegrityError: join cardinality changes, out-of-range prices
- MissingValueError: warning category for rows dropped from aggregation
- ModelFitError: singular or non-identified regression specification
- SequencingError: second stage requested before the first stage ran
"""

from typing import Optional


class AnalysisError(Exception):
    """Base class for all pipeline errors."""


class DataIntegrityError(AnalysisError, ValueError):
    """Input tables violate a structural or range invariant."""


class MissingValueError(AnalysisError, UserWarning):
    """
    Rows excluded because a required value is missing.

    Emitted through ``warnings.warn``; the pipeline never raises it.
    """


class ModelFitError(AnalysisError):
    """A regression specification could not be estimated."""

    def __init__(self, message: str, formula: Optional[str] = None, term: Optional[str] = None):
        self.formula = formula
        self.term = term
        details = []
        if formula is not None:
            details.append(f"formula={formula!r}")
        if term is not None:
            details.append(f"term={term!r}")
        if details:
            message = f"{message} ({', '.join(details)})"
        super().__init__(message)


class SequencingError(AnalysisError, RuntimeError):
    """A dependent stage ran before the stage it consumes."""
