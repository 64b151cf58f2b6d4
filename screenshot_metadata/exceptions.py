"""
Custom exception hierarchy for the screenshot metadata pipeline.

Sinks and helpers raise these; the pipeline turns them into logged
results so no failure reaches the host process.
"""


class ScreenshotMetadataError(Exception):
    """Base exception for all screenshot metadata errors."""
    pass


class ScreenshotNotFoundError(ScreenshotMetadataError):
    """Raised when no screenshot file could be located."""
    pass


class MetadataWriteError(ScreenshotMetadataError):
    """Raised when text chunks cannot be embedded in the image."""
    pass


class SidecarWriteError(ScreenshotMetadataError):
    """Raised when a sidecar file cannot be written."""
    pass


class RenameError(ScreenshotMetadataError):
    """Raised when a screenshot cannot be renamed."""
    pass


class PolicyError(ScreenshotMetadataError):
    """Raised when the policy file cannot be read or written."""
    pass
