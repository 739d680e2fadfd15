"""morphoscan.scan

Sweep-level coordination: job queue -> worker runs -> exported data.
"""

from .coordinator import JobReport, ScanCoordinator, ScanReport

__all__ = ["JobReport", "ScanCoordinator", "ScanReport"]
