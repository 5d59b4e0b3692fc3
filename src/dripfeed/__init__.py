"""Dripfeed - replay a source tree into git as a planned series of commits.

A source snapshot is classified, bin-packed into commits spread over a number
of simulated days, persisted as a reviewable plan, and then executed against a
real repository one day at a time. Every run resumes from a durable cursor.
"""

from dripfeed.foundation.errors import DripfeedError, ErrorCode

__version__ = "0.1.0"

__all__ = [
    "DripfeedError",
    "ErrorCode",
    "__version__",
]
