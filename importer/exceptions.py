class UploadError(Exception):
    """
    Base class for failures while importing a file from a URL.

    ``code`` is a short machine-readable identifier which is reported back to
    the user, ``detail`` an optional human-readable explanation.
    """

    default_code = "upload-error"

    def __init__(self, detail="", code=None):
        self.code = code or self.default_code
        self.detail = detail
        super().__init__(f"{self.code}: {detail}" if detail else self.code)

    def as_dict(self):
        return {"code": self.code, "detail": self.detail}


class TransportError(UploadError):
    """
    Raised when the remote file cannot be fetched: network errors, timeouts,
    non-success HTTP statuses or a body larger than the permitted size.
    """

    default_code = "http-request-error"


class VerificationError(UploadError):
    """Raised when fetched content is rejected by verification."""

    default_code = "verification-error"


class CommitError(UploadError):
    """Raised when the storage layer rejects the final write."""

    default_code = "commit-failed"


class DispatchError(UploadError):
    """
    Raised when a result cannot be delivered to the user, for example when
    their session no longer exists or the message could not be sent.
    """

    default_code = "dispatch-failed"


class InvalidJobParameters(UploadError):
    """Raised when a queued job's payload cannot be turned into parameters."""

    default_code = "invalid-job-parameters"
