"""TraceLedger — deployment traceability for Docker containers and images."""

__version__ = "0.1.0"
