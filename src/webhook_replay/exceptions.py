"""Custom exceptions for the replay harness.

This module defines the exception hierarchy used to signal configuration
problems, invalid effect declarations and per-call handler failures.

Only configuration errors abort a run. Every other error is scoped to a single
call: the worker pool catches it at the worker boundary and records it as that
call's outcome.

Examples:
    Handling an invalid configuration::

        from webhook_replay.exceptions import ConfigurationError

        try:
            config = ReplayConfig.from_dict({"runs": 0})
        except ConfigurationError as e:
            logger.error("config.invalid", error=e.message)
            raise SystemExit(1)

    Declaring an effect with an empty key inside a handler::

        async def handler(payload, ctx):
            ctx.effect("   ")  # raises EffectKeyError, the call is counted as failed
"""


class ReplayError(Exception):
    """Base exception for all replay-related errors.

    Attributes:
        message: Human-readable error description.

    Examples:
        Catching all replay errors::

            try:
                result = await replay(handler, payload, config)
            except ReplayError as e:
                logger.error("replay.aborted", error=str(e))
    """

    def __init__(self, message: str) -> None:
        """Initialize the exception with a message.

        Args:
            message: Human-readable error description.
        """
        self.message = message
        super().__init__(message)


class ConfigurationError(ReplayError):
    """Run options are invalid; the run is aborted before scheduling starts.

    Attributes:
        message: Human-readable error description.
        cause: The underlying validation error, if any.

    Examples:
        Wrapping a pydantic validation failure::

            try:
                return cls(**config_dict)
            except ValidationError as e:
                raise ConfigurationError(f"Invalid replay options: {e}", cause=e) from e
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        """Initialize the configuration error.

        Args:
            message: Human-readable error description.
            cause: The underlying exception that made the options invalid.
        """
        super().__init__(message)
        self.cause = cause


class EffectKeyError(ReplayError):
    """An effect was declared with an empty or non-string key.

    Raised from ``CallContext.effect()`` inside the handler, so unless the
    handler swallows it the call ends as a failure.

    Attributes:
        message: Human-readable error description.
        key: The rejected key as passed by the handler.
    """

    def __init__(self, message: str, key: object) -> None:
        """Initialize the effect key error.

        Args:
            message: Human-readable error description.
            key: The rejected key.
        """
        super().__init__(message)
        self.key = key


class HandlerRuntimeError(ReplayError):
    """The handler raised while processing one delivery.

    Attributes:
        message: Human-readable error description.
        call: Call number (claim order) of the failed call.
        delivery: Delivery index of the failed call.
        cause: The exception raised by the handler.
    """

    def __init__(
        self,
        message: str,
        call: int,
        delivery: int,
        cause: BaseException | None = None,
    ) -> None:
        """Initialize the handler runtime error.

        Args:
            message: Human-readable error description.
            call: Call number of the failed call.
            delivery: Delivery index of the failed call.
            cause: The exception raised by the handler.
        """
        super().__init__(message)
        self.call = call
        self.delivery = delivery
        self.cause = cause


class HandlerTimeoutError(ReplayError):
    """The handler did not finish within the configured timeout.

    The underlying execution is not torn down; it may keep running and its
    later effects are still recorded.

    Attributes:
        message: Human-readable error description.
        call: Call number of the timed-out call.
        delivery: Delivery index of the timed-out call.
        timeout_ms: The timeout that elapsed, in milliseconds.
    """

    def __init__(self, message: str, call: int, delivery: int, timeout_ms: int) -> None:
        """Initialize the handler timeout error.

        Args:
            message: Human-readable error description.
            call: Call number of the timed-out call.
            delivery: Delivery index of the timed-out call.
            timeout_ms: The timeout that elapsed.
        """
        super().__init__(message)
        self.call = call
        self.delivery = delivery
        self.timeout_ms = timeout_ms


class HandlerLoadError(ReplayError):
    """The handler module could not be imported or exports no callable.

    Attributes:
        message: Human-readable error description.
        target: The handler reference that failed to load.
        cause: The underlying import error, if any.
    """

    def __init__(self, message: str, target: str, cause: Exception | None = None) -> None:
        """Initialize the handler load error.

        Args:
            message: Human-readable error description.
            target: The handler reference that failed to load.
            cause: The underlying exception.
        """
        super().__init__(message)
        self.target = target
        self.cause = cause
