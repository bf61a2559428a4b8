class RegionMonitorError(Exception):
    """Base class for errors raised by region_monitor."""


class DataLoadError(RegionMonitorError):
    """
    The region/range directory could not be loaded or validated.

    Raised at the ingestion boundary only; nothing past the loader ever sees
    a partially-validated record.
    """


class NotReadyError(RegionMonitorError):
    """Status was requested before the first monitoring cycle completed."""


class CheckInterrupted(RegionMonitorError):
    """A region check was cut short by shutdown before all samples were probed."""
