"""morphoscan: parameter sweeps for external simulation models.

A sweep is a queue of jobs. A job is one worker process. A worker leaves
files behind; we read them while it is still writing the next one.
"""

from __future__ import annotations

__all__ = [
    "__version__",
    "PROGRAM_NAME",
]

__version__ = "0.7.1"

# Controls temporary folder names and exported file names.
PROGRAM_NAME = "morphoscan"
