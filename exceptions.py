# ============================================================================
# exceptions.py - Pipeline Error Taxonomy
# ============================================================================
"""
This module handles:
- The error hierarchy raised by every pipeline stage
- Stage and context bookkeeping so a failed run says where and why
"""


class PipelineError(Exception):
    """Base class for every failure raised by the analysis run"""

    default_stage = "pipeline"

    def __init__(self, message, stage=None, **context):
        self.stage = stage or self.default_stage
        self.context = context
        super().__init__(message)

    def __str__(self):
        message = super().__str__()
        if self.context:
            details = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"[{self.stage}] {message} ({details})"
        return f"[{self.stage}] {message}"


class ConfigurationError(PipelineError):
    default_stage = "configuration"


class InputError(PipelineError):
    """Malformed or missing source data"""
    default_stage = "loading"


class AlignmentError(PipelineError):
    """Insufficient overlapping history across the three series"""
    default_stage = "alignment"


class FitError(PipelineError):
    """Degenerate series that breaks a statistical test"""
    default_stage = "stationarity"


class EstimationError(PipelineError):
    """Rank-deficient regression, non-finite inputs or too few observations"""
    default_stage = "estimation"


class DivisionByZeroError(PipelineError, ZeroDivisionError):
    """MAPE denominator is zero"""
    default_stage = "evaluation"
