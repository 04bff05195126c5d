"""Exception types raised by the route matching engine."""


class RouteImpactError(Exception):
    """Base class for route-impact errors."""


class ConfigurationError(RouteImpactError):
    """Invalid settings or curated zone/pattern tables."""


class DataLoadError(RouteImpactError):
    """A required feed file is missing or unparseable, or the load failed.

    Attributes:
        file: Name of the feed file (or source URL) that could not be loaded.
        cause: Human-readable description of the failure.
    """

    def __init__(self, file: str, cause: str | BaseException):
        self.file = file
        self.cause = str(cause) or type(cause).__name__
        super().__init__(f"Failed to load {file}: {self.cause}")
