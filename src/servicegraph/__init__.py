"""servicegraph: service-call topology rendering for visualization clients."""

__version__ = "0.1.0"
