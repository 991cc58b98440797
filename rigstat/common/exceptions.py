"""
Custom Exception Classes for the rigstat agent

Hierarchical exception structure for error handling across services.
Every error below except ConfigError is handled at the boundary of the
component that consumes it and never stops the agent.
"""


class RigstatError(Exception):
    """Base exception for all rigstat agent errors"""

    def __init__(self, message: str, recoverable: bool = True):
        self.message = message
        self.recoverable = recoverable
        super().__init__(message)


class ConfigError(RigstatError):
    """Configuration-related errors (fatal at startup)"""

    def __init__(self, message: str):
        super().__init__(f"Config Error: {message}", recoverable=False)


class TransportError(RigstatError):
    """Device query failed: refused, reset, timed out or oversized response"""

    def __init__(
        self,
        message: str,
        host: str | None = None,
        port: int | None = None,
        timed_out: bool = False,
    ):
        self.host = host
        self.port = port
        self.timed_out = timed_out
        super().__init__(f"Transport Error: {message}", recoverable=True)


class ParseError(RigstatError):
    """Malformed or incomplete device payload"""

    def __init__(self, message: str):
        super().__init__(f"Parse Error: {message}", recoverable=True)


class SpoolError(RigstatError):
    """Spool directory errors"""

    def __init__(self, message: str, name: str | None = None):
        self.name = name
        super().__init__(message, recoverable=True)


class WriteError(SpoolError):
    """Reading could not be persisted; the reading is lost"""

    def __init__(self, message: str, name: str | None = None):
        super().__init__(f"Write Error: {message}", name)


class DeleteError(SpoolError):
    """Delivered entry could not be removed from the spool"""

    def __init__(self, message: str, name: str | None = None, missing: bool = False):
        self.missing = missing
        super().__init__(f"Delete Error: {message}", name)


class UploadError(RigstatError):
    """Collector did not acknowledge the reading with 201"""

    def __init__(
        self,
        message: str,
        name: str | None = None,
        status_code: int | None = None,
        body: str | None = None,
    ):
        self.name = name
        self.status_code = status_code
        self.body = body
        super().__init__(f"Upload Error: {message}", recoverable=True)
