"""Docgates package root."""

from docgates.exceptions import (
    DocgatesError,
    InfrastructureError,
    NeverThrown,
)
from docgates.invariants import never

__all__ = ["__version__", "DocgatesError", "InfrastructureError", "NeverThrown", "never"]

__version__ = "0.1.0"
