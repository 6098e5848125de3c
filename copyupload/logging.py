import warnings
from types import MappingProxyType
from typing import Any, Callable, Optional

import structlog

from copyupload.utils.logging import get_logging_user_id

# Default registry of semantic context extractors
_DEFAULT_EXTRACTORS: dict[str, Callable[[Any], dict[str, Any]]] = {}


def _register_default_extractor(
    context_key: str, extractor_function: Callable[[Any], dict[str, Any]]
):
    _DEFAULT_EXTRACTORS[context_key] = extractor_function


_register_default_extractor("user", lambda user: {"user_id": get_logging_user_id(user)})

# `job` is a JobParameters instance. It never carries the session id, which
# would let anyone reading the logs hijack the requesting user's session.
_register_default_extractor(
    "job",
    lambda job: {
        "upload_filename": getattr(job, "filename", None),
        "upload_url": getattr(job, "url", None),
        "upload_username": getattr(job, "username", None),
        "upload_session_key": getattr(job, "session_key", None),
    },
)

_register_default_extractor(
    "upload",
    lambda upload: {
        "uploaded_file_id": getattr(upload, "pk", None),
        "upload_filename": getattr(upload, "name", None),
    },
)

_register_default_extractor(
    "stash",
    lambda stash: {
        **_DEFAULT_EXTRACTORS["user"](getattr(stash, "user", None)),
        "stash_key": getattr(stash, "key", None),
    },
)

_DEFAULT_EXTRACTORS = MappingProxyType(_DEFAULT_EXTRACTORS)


class StructuredLogger:
    """
    A structlog wrapper which enforces the logging conventions used across
    copyupload.

    Every call requires a human-readable message and a short machine-readable
    ``event_code``. Warnings and errors additionally require ``reason`` and
    ``reason_code``.

    Objects passed under a registered context key are expanded into plain
    fields at log time:

    - ``user`` -> ``user_id``
    - ``job`` -> ``upload_filename``, ``upload_url``, ``upload_username``,
      ``upload_session_key``
    - ``upload`` -> ``uploaded_file_id``, ``upload_filename``
    - ``stash`` -> ``stash_key``, ``user_id``

    Explicit keyword values override extracted ones and ``None`` values are
    dropped.

    Usage::

        structured_logger = StructuredLogger.get_logger(__name__)
        structured_logger.info(
            "Upload committed.", event_code="upload_committed", job=parameters
        )

        job_logger = structured_logger.bind(job=parameters)
        job_logger.warning(
            "Fetch failed.",
            event_code="upload_fetch_failed",
            reason="Timed out",
            reason_code="http-timed-out",
        )
    """

    def __init__(self, logger, context: Optional[dict[str, Any]] = None):
        self._logger = logger
        self._context = context or {}
        self._extractors = dict(_DEFAULT_EXTRACTORS)

    @classmethod
    def get_logger(cls, name: str) -> "StructuredLogger":
        return cls(structlog.get_logger(f"structlog.{name}"))

    def register_extractor(
        self, key: str, extractor: Callable[[Any], dict[str, Any]]
    ) -> None:
        """
        Register a context extractor for this logger instance only.

        Chained default extractors (``stash`` -> ``user``) keep using the
        default implementation.
        """
        self._extractors[key] = extractor
        if key in _DEFAULT_EXTRACTORS:
            warnings.warn(
                f"Extractor for '{key}' registered but default extractors may still "
                f"reference the original implementation via chaining.",
                UserWarning,
                stacklevel=2,
            )

    def unregister_extractor(self, key: str) -> None:
        self._extractors.pop(key, None)

    def log(
        self,
        level: str,
        message: str,
        *,
        event_code: str,
        reason: Optional[str] = None,
        reason_code: Optional[str] = None,
        **context: Any,
    ) -> None:
        """
        Emit a structured log entry. Use the level methods instead of calling
        this directly.

        Raises:
            ValueError: If required fields are missing for the given level.
        """
        if not message:
            raise ValueError("Log message is required.")
        if not event_code:
            raise ValueError("Structured logs must include an 'event_code' field.")
        if level in ("warning", "error", "exception") and (
            not reason or not reason_code
        ):
            raise ValueError(
                "Warnings and errors must include both 'reason' and 'reason_code'."
            )

        context_data = {"event_code": event_code}
        if reason:
            context_data["reason"] = reason
        if reason_code:
            context_data["reason_code"] = reason_code

        bound_context = self._context

        for context_key, extractor_function in self._extractors.items():
            context_object = context.pop(context_key, bound_context.get(context_key))
            if context_object:
                for key, value in extractor_function(context_object).items():
                    if value is not None:
                        context_data.setdefault(key, value)

        for key, value in bound_context.items():
            if key not in self._extractors and key not in context and value is not None:
                context_data[key] = value

        # Explicit values win over extracted and bound ones
        for key, value in context.items():
            if value is not None:
                context_data[key] = value

        getattr(self._logger, level)(message, **context_data)

    def debug(self, message: str, *, event_code: str, **kwargs):
        self.log("debug", message, event_code=event_code, **kwargs)

    def info(self, message: str, *, event_code: str, **kwargs):
        self.log("info", message, event_code=event_code, **kwargs)

    def warning(
        self, message: str, *, event_code: str, reason: str, reason_code: str, **kwargs
    ):
        self.log(
            "warning",
            message,
            event_code=event_code,
            reason=reason,
            reason_code=reason_code,
            **kwargs,
        )

    def error(
        self, message: str, *, event_code: str, reason: str, reason_code: str, **kwargs
    ):
        self.log(
            "error",
            message,
            event_code=event_code,
            reason=reason,
            reason_code=reason_code,
            **kwargs,
        )

    def exception(
        self, message: str, *, event_code: str, reason: str, reason_code: str, **kwargs
    ):
        """Emit an error-level entry including the active exception's traceback."""
        self.log(
            "exception",
            message,
            event_code=event_code,
            reason=reason,
            reason_code=reason_code,
            **kwargs,
        )

    def bind(self, **kwargs: Any) -> "StructuredLogger":
        """
        Return a new logger with additional context bound. Semantic objects
        such as ``job`` or ``user`` are expanded at log time.
        """
        new_context = self._context.copy()
        new_context.update(kwargs)
        return StructuredLogger(self._logger, context=new_context)
