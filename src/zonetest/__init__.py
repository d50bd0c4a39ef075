"""
Zonetest: job store for DNS delegation tests.

Turns client test requests into canonical, content-addressed jobs,
deduplicates identical requests, and tracks each job from submission
to its stored result.
"""

__version__ = "0.1.0"
