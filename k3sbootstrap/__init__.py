"""K3s multi-node cluster bootstrap."""

__version__ = "0.1.0"
