from logging import getLogger

from django.conf import settings
from django.contrib.auth import get_user_model

from copyupload.celery import app
from copyupload.logging import StructuredLogger
from importer.exceptions import InvalidJobParameters
from importer.jobs import JobParameters
from importer.notifications import DirectMessageChannel, MailboxChannel
from importer.outcomes import UploadFailure
from importer.pipeline import ImportPipeline, PipelineOptions

logger = getLogger(__name__)
structured_logger = StructuredLogger.get_logger(__name__)


@app.task(bind=True, ignore_result=True)
def upload_from_url_task(self, payload):
    """
    Fetch, check and store a file from a URL, then report the outcome to the
    requesting user.

    Always returns True: a failed upload is a processed job since its failure
    has been reported to the user, and the queue has nothing to retry.
    """
    try:
        parameters = JobParameters.from_payload(payload)
        user = get_job_user(parameters)
    except InvalidJobParameters as exc:
        report_invalid_job(payload, exc)
        return True

    options = PipelineOptions(timeout=settings.COPY_UPLOAD_ASYNC_TIMEOUT or None)
    outcome = ImportPipeline(parameters, user, options).run()

    try:
        parameters.channel().dispatch(outcome)
    except Exception:
        logger.exception(
            "Unhandled exception reporting %s result for %s",
            outcome.kind.value,
            parameters,
        )

    return True


def get_job_user(parameters):
    User = get_user_model()
    try:
        return User.objects.get(**{User.USERNAME_FIELD: parameters.username})
    except User.DoesNotExist as exc:
        raise InvalidJobParameters(f"Unknown user {parameters.username}") from exc


def channel_from_payload(payload):
    """
    Pick the channel a raw payload asks for, or None if it does not identify
    one. Used to report jobs whose payload could not be turned into
    ``JobParameters``.
    """
    if not isinstance(payload, dict):
        return None
    if payload.get("leave_message") is True:
        username = payload.get("username")
        if isinstance(username, str) and username:
            return DirectMessageChannel(
                username, payload.get("url", ""), payload.get("filename", "")
            )
        return None
    session_id = payload.get("session_id")
    session_key = payload.get("session_key")
    if isinstance(session_id, str) and isinstance(session_key, str):
        if session_id and session_key:
            return MailboxChannel(session_id, session_key)
    return None


def report_invalid_job(payload, exc):
    logger.error("Rejecting upload job with invalid parameters: %s", exc)
    structured_logger.error(
        "Upload job rejected before starting.",
        event_code="upload_job_rejected",
        reason=exc.detail or exc.code,
        reason_code=exc.code,
    )

    channel = channel_from_payload(payload)
    if channel is None:
        logger.warning("Unable to report invalid upload job, no channel in payload")
        return

    try:
        channel.dispatch(UploadFailure.from_exception(exc))
    except Exception:
        logger.exception("Unhandled exception reporting invalid upload job")
