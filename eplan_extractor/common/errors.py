"""Domain errors and failure typing."""


class PipelineError(Exception):
    """Base class for pipeline failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class StageError(PipelineError):
    """Raised for failures of one unit of work inside a run."""

    error_code = "STAGE_ERROR"


class SessionError(StageError):
    """Raised when the browser session cannot perform an action."""

    error_code = "SESSION_ERROR"


class SessionTimeoutError(SessionError):
    """Raised when a browser wait exceeds its timeout."""

    error_code = "SESSION_TIMEOUT"


class AuthError(StageError):
    error_code = "AUTH_ERROR"


class ScrapeError(StageError):
    error_code = "SCRAPE_ERROR"


class DeliveryError(StageError):
    error_code = "DELIVERY_ERROR"


class ParseError(PipelineError):
    """Raised when one raw dashboard row cannot be turned into a record."""

    error_code = "PARSE_ERROR"

    def __init__(self, message: str, raw_text: str | None = None) -> None:
        super().__init__(message)
        self.raw_text = raw_text


class MalformedRecordError(ParseError):
    error_code = "MALFORMED_RECORD"


class InvalidReferenceIdError(ParseError):
    error_code = "INVALID_REFERENCE_ID"


class UnsupportedSchemaError(ParseError):
    error_code = "UNSUPPORTED_SCHEMA"
