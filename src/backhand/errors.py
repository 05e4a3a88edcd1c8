"""Error taxonomy for the Backhand pipeline.

None of these are fatal to the process. The worst outcome of any of them is
a skipped tick.
"""

from __future__ import annotations

from typing import Optional


class BackhandError(Exception):
    """Base class for all Backhand errors."""


class InvalidRegion(BackhandError, ValueError):
    """A region rectangle is malformed or does not fit the frame.

    Raised at configuration time, before any luminance is computed.
    """


class MalformedFrame(BackhandError, ValueError):
    """A delivered frame cannot be analysed with the configured partition.

    The tick is skipped and the gesture state is left untouched.
    """


class AnalysisJobFailure(BackhandError):
    """One region's luminance job failed or timed out."""

    def __init__(self, region: str, reason: str, cause: Optional[BaseException] = None):
        super().__init__(f"analysis of {region} failed: {reason}")
        self.region = region
        self.reason = reason
        self.cause = cause


class ConfigError(BackhandError, ValueError):
    """Invalid configuration value."""
