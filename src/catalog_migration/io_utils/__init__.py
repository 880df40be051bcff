"""Input and output helpers for configuration and failure reports.

Exports:
    load_app_config: Read the YAML configuration file.
    FailureReportWriter: Persist failed documents and maintain a manifest.
"""

from __future__ import annotations

from .failures import FailureReportWriter
from .loader import load_app_config

__all__ = ["FailureReportWriter", "load_app_config"]
