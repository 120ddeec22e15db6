"""Expand Konjure resource specifications into Kubernetes resource nodes."""

__version__ = "0.1.0"