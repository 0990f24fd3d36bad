"""
Scan pipeline error taxonomy.

Extraction errors fail a scan. Inference errors never do: the insight
generator turns them into the fallback result.
"""


class ScanError(Exception):
    """Base class for scan pipeline errors."""


class ExtractionError(ScanError):
    """The page could not be loaded or read."""


class LaunchFailure(ExtractionError):
    """The headless browser process could not be started."""


class NavigationTimeout(ExtractionError):
    """The page did not load and settle within the navigation timeout."""


class NavigationError(ExtractionError):
    """The browser reported an error while navigating."""


class EvaluationFailure(ExtractionError):
    """The in-page extraction script failed or returned unusable data."""


class InferenceError(ScanError):
    """The inference service did not produce a usable answer."""


class InferenceUnavailable(InferenceError):
    """Transport error, timeout, or empty completion."""


class MalformedResponse(InferenceError):
    """The completion was not JSON matching the insight schema."""


class ScanNotFoundError(ScanError):
    def __init__(self, scan_id: str):
        self.scan_id = scan_id
        super().__init__(f"Scan {scan_id} not found")


class ScanTransitionError(ScanError):
    """A write would move a scan backwards or out of a terminal state."""
