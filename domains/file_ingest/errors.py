"""Error types for the file ingest domain."""


class IntakeError(RuntimeError):
    """Base error type."""


class ConfigError(IntakeError):
    """Configuration contract violation."""


class ExtractionError(IntakeError):
    """Archive extraction produced nothing usable."""
