"""Exception types raised inside the capture and comparison pipeline."""

from __future__ import annotations


class MockupDiffError(Exception):
    """Base class for all pipeline errors."""


class BrowserLaunchFailure(MockupDiffError):
    """The browser could not be started. The only error that aborts a run."""


class ReferenceMissing(MockupDiffError):
    pass


class ImageDecodeError(MockupDiffError):
    pass


class NavigationTimeout(MockupDiffError):
    pass


class NavigationError(MockupDiffError):
    pass
