"""fork-merge-engine: Concurrent inference fan-out with auditable merging.

This package runs several inference branches against a shared context
(fork) and reduces their confidence-scored results into a single decision
(merge) with full provenance.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
