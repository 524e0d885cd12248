"""
Regulatory data source orchestration.

Registers external regulatory data sources, invokes them under per-source
rate limits, deactivates misbehaving sources and runs the scheduled
synchronisation jobs.
"""

__version__ = "1.0.0"
