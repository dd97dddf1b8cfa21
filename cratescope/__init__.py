"""Fact extraction, querying and API drift checks for Rust crates."""

from .analysis import Analysis
from .models import Finding, Location, Severity

__version__ = "0.1.0"

__all__ = ["Analysis", "Finding", "Location", "Severity", "__version__"]
