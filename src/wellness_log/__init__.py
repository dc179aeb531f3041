"""
Wellness Log - Personal health record cache and trend engine.

Caches weight, blood pressure and habit records loaded from local storage,
reconciles near-duplicate measurements and computes windowed statistics.
"""

__version__ = "0.1.0"
