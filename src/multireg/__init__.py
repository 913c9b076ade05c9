"""multireg main package.

Per-resolution optimizer coordination for multi-resolution registration:
lifecycle hooks, stochastic sample refresh, sinus scale schedules and
result checksums. Install from the repo root and use via `multireg.*`
and `python -m multireg.cli.*`.
"""

__all__ = [
    "__version__",
]

__version__ = "0.1.0"
