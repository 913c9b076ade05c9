from .base import OptimizerBase, ResolutionState, NEW_SAMPLES_EVERY_ITERATION
from .checksum import parameters_checksum, quantize_parameters, format_checksum_line
from .scales import sinus_scales

__all__ = [
    "OptimizerBase",
    "ResolutionState",
    "NEW_SAMPLES_EVERY_ITERATION",
    "parameters_checksum",
    "quantize_parameters",
    "format_checksum_line",
    "sinus_scales",
]
