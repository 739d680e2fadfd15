"""morphoscan.sweep

Parameter sweep planning (odometer enumeration + job queue).
"""

from .odometer import Odometer
from .planner import SweepPlanner, enumerate_jobs, job_count

__all__ = ["Odometer", "SweepPlanner", "enumerate_jobs", "job_count"]
