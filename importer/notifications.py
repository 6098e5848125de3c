"""
Delivery of a finished upload's outcome to the user who requested it.

A job uses exactly one channel, picked when the job is created: an e-mail to
the user (``DirectMessageChannel``) or a record in the session mailbox which
the user's browser polls (``MailboxChannel``). Delivery is best-effort: the
outcome has already happened, so failures are logged and never raised to the
queue.
"""

from logging import getLogger
from smtplib import SMTPException

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import send_mail
from django.template.loader import render_to_string

from copyupload.logging import StructuredLogger

from .exceptions import DispatchError
from .mailbox import locked_session, store_result
from .outcomes import ImportResult

logger = getLogger(__name__)
structured_logger = StructuredLogger.get_logger(__name__)


class NotificationChannel:
    name = None

    def deliver(self, outcome):
        """
        Deliver ``outcome``, raising ``DispatchError`` if that is not possible
        """
        raise NotImplementedError

    def dispatch(self, outcome):
        """
        Deliver ``outcome`` and return True, or log the failure and return
        False
        """
        try:
            self.deliver(outcome)
        except DispatchError as exc:
            logger.warning(
                "Unable to deliver %s upload result via %s: %s",
                outcome.kind.value,
                self.name,
                exc,
            )
            structured_logger.warning(
                "Upload result could not be delivered.",
                event_code="upload_dispatch_failed",
                reason=exc.detail or exc.code,
                reason_code=exc.code,
                channel=self.name,
                result=outcome.kind.value,
            )
            return False

        structured_logger.info(
            "Upload result delivered.",
            event_code="upload_dispatched",
            channel=self.name,
            result=outcome.kind.value,
        )
        return True


class DirectMessageChannel(NotificationChannel):
    """
    E-mail the outcome to the user. Templates are looked up as
    ``importer/upload_<result>_subject.txt`` and
    ``importer/upload_<result>_body.txt``.
    """

    name = "direct-message"

    def __init__(self, username, url, filename):
        self.username = username
        self.url = url
        self.filename = filename

    def get_user(self):
        User = get_user_model()
        try:
            return User.objects.get(**{User.USERNAME_FIELD: self.username})
        except User.DoesNotExist as exc:
            raise DispatchError(self.username, code="user-not-found") from exc

    def get_context(self, outcome, user):
        context = {
            "user": user,
            "url": self.url,
            "filename": self.filename,
        }
        context.update(outcome.as_record())
        return context

    def render(self, outcome, user):
        template_prefix = f"importer/upload_{outcome.kind.value.lower()}"
        context = self.get_context(outcome, user)
        subject = render_to_string(f"{template_prefix}_subject.txt", context)
        # Ensure subject is a single line
        subject = "".join(subject.splitlines()).strip()
        body = render_to_string(f"{template_prefix}_body.txt", context)
        return subject, body

    def deliver(self, outcome):
        if outcome.kind == ImportResult.QUEUED:
            raise DispatchError("Queued is not a terminal result", code="not-terminal")

        user = self.get_user()
        if not user.email:
            raise DispatchError(self.username, code="no-email-address")

        subject, body = self.render(outcome, user)
        try:
            send_mail(
                subject,
                message=body,
                from_email=settings.DEFAULT_FROM_EMAIL,
                recipient_list=[user.email],
            )
        except (SMTPException, OSError) as exc:
            raise DispatchError(str(exc), code="message-not-sent") from exc


class MailboxChannel(NotificationChannel):
    """
    Store the outcome in slot ``session_key`` of the user's session mailbox
    """

    name = "mailbox"

    def __init__(self, session_id, session_key):
        self.session_id = session_id
        self.session_key = session_key

    def deliver(self, outcome):
        with locked_session(self.session_id) as session:
            if session is None:
                raise DispatchError(
                    "Cannot store result in session, session does not exist",
                    code="session-not-found",
                )
            store_result(session, self.session_key, outcome)
            session.save()
