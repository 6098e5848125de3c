import uuid
from dataclasses import asdict, dataclass, fields
from logging import getLogger

from copyupload.logging import StructuredLogger

from .exceptions import InvalidJobParameters
from .mailbox import initialize_session_data, locked_session
from .notifications import DirectMessageChannel, MailboxChannel

logger = getLogger(__name__)
structured_logger = StructuredLogger.get_logger(__name__)


@dataclass(frozen=True)
class JobParameters:
    """
    Everything a queued upload needs, fixed when the job is enqueued.

    ``leave_message`` picks how the result reaches the user: an e-mail when
    true, otherwise the session mailbox slot addressed by ``session_id`` and
    ``session_key``.
    """

    filename: str
    url: str
    username: str
    comment: str = ""
    page_text: str = ""
    watch: bool = False
    ignore_warnings: bool = False
    leave_message: bool = False
    session_id: str = ""
    session_key: str = ""

    def __post_init__(self):
        for name in ("filename", "url", "username"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                raise InvalidJobParameters(f"{name} must be a non-empty string")
        for name in ("comment", "page_text", "session_id", "session_key"):
            if not isinstance(getattr(self, name), str):
                raise InvalidJobParameters(f"{name} must be a string")
        for name in ("watch", "ignore_warnings", "leave_message"):
            if not isinstance(getattr(self, name), bool):
                raise InvalidJobParameters(f"{name} must be a boolean")
        if not self.leave_message and not (self.session_id and self.session_key):
            raise InvalidJobParameters(
                "session_id and session_key are required unless leave_message is set"
            )

    def __str__(self):
        return "JobParameters(filename=%s, url=%s, username=%s)" % (
            self.filename,
            self.url,
            self.username,
        )

    @classmethod
    def from_payload(cls, payload):
        """
        Rebuild parameters from a queue payload.

        Raises:
            InvalidJobParameters: The payload is not a mapping, has unknown or
                missing keys, or holds values of the wrong type.
        """
        if not isinstance(payload, dict):
            raise InvalidJobParameters(f"Expected a mapping, got {type(payload)}")
        known = {i.name for i in fields(cls)}
        unknown = set(payload) - known
        if unknown:
            raise InvalidJobParameters(f"Unknown parameters: {sorted(unknown)}")
        try:
            return cls(**payload)
        except TypeError as exc:
            raise InvalidJobParameters(str(exc)) from exc

    def as_payload(self):
        return asdict(self)

    def channel(self):
        if self.leave_message:
            return DirectMessageChannel(self.username, self.url, self.filename)
        return MailboxChannel(self.session_id, self.session_key)


def enqueue_upload_from_url(
    request,
    *,
    filename,
    url,
    comment="",
    page_text="",
    watch=False,
    ignore_warnings=False,
    leave_message=False,
):
    """
    Queue an upload of ``url`` as ``filename`` on behalf of ``request.user``.

    Unless ``leave_message`` is set the mailbox slot is marked as queued and
    saved before the task is sent, so a poll never sees an accepted job
    without a record. The slot is written to a freshly loaded copy of the
    session, keeping results other jobs stored since this request began.
    """
    from .tasks.uploads import upload_from_url_task

    session = request.session
    session_id = session_key = ""
    if not leave_message:
        if session.modified or not session.session_key:
            session.save()
        session_id = session.session_key
        session_key = uuid.uuid4().hex

    parameters = JobParameters(
        filename=filename,
        url=url,
        username=request.user.get_username(),
        comment=comment,
        page_text=page_text,
        watch=watch,
        ignore_warnings=ignore_warnings,
        leave_message=leave_message,
        session_id=session_id,
        session_key=session_key,
    )

    if not leave_message:
        with locked_session(session_id) as stored:
            initialize_session_data(stored, session_key)
            stored.save()
        # The request's copy of the mailbox is out of date from here on, so the
        # session middleware must not write it back
        session.modified = False

    structured_logger.info(
        "Upload queued.",
        event_code="upload_queued",
        job=parameters,
        user=request.user,
    )
    upload_from_url_task.delay(parameters.as_payload())
    return parameters
