"""Bounded, failure-tolerant execution of external CLI text-generation backends."""

__version__ = "0.1.0"
