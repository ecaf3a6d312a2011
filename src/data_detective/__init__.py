"""Data Detective: dataset profiling, AI provider routing and answer confidence scoring."""

__version__ = "0.1.0"
