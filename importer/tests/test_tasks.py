from unittest import mock

import requests
from django.core import mail
from django.core.cache import caches
from django.test import TestCase, override_settings

from importer import mailbox
from importer.models import StashedUpload, UploadedFile
from importer.notifications import DirectMessageChannel, MailboxChannel
from importer.tasks.uploads import channel_from_payload, upload_from_url_task

from .utils import (
    create_session,
    create_uploaded_file,
    create_user,
    job_payload,
    load_session,
    make_png,
    mock_response,
    stalled_response,
)


@mock.patch("importer.upload.requests.get")
class UploadFromUrlTaskTests(TestCase):
    def setUp(self):
        for cache in caches.all():
            cache.clear()
        self.user = create_user()
        self.session = create_session()
        mailbox.initialize_session_data(self.session, "job-key")
        self.session.save()
        self.content = make_png()

    def payload(self, **kwargs):
        return job_payload(session_id=self.session.session_key, **kwargs)

    def get_record(self, key="job-key"):
        return mailbox.get_session_data(load_session(self.session.session_key), key)

    def test_success(self, get_mock):
        get_mock.return_value = mock_response(
            self.content, headers={"Content-Type": "image/png"}
        )

        self.assertTrue(upload_from_url_task.delay(self.payload()).get())

        self.assertEqual(
            self.get_record(), {"result": "Success", "filename": "Example.png"}
        )
        uploaded = UploadedFile.objects.get(name="Example.png")
        self.assertEqual(uploaded.uploaded_by, self.user)
        self.assertEqual(uploaded.size, len(self.content))
        self.assertEqual(uploaded.mime_type, "image/png")
        self.assertEqual(uploaded.comment, "Copied from example.com")
        self.assertEqual(len(mail.outbox), 0)

    def test_timeout(self, get_mock):
        get_mock.side_effect = requests.Timeout("Read timed out")

        upload_from_url_task(self.payload())

        self.assertEqual(
            self.get_record(),
            {
                "result": "Failure",
                "errors": [{"code": "http-timed-out", "detail": "Read timed out"}],
            },
        )
        self.assertFalse(UploadedFile.objects.exists())

    def test_timeout_while_streaming(self, get_mock):
        get_mock.return_value = stalled_response(self.content[:8])

        upload_from_url_task(self.payload())

        record = self.get_record()
        self.assertEqual(record["result"], "Failure")
        self.assertEqual(
            [error["code"] for error in record["errors"]], ["http-timed-out"]
        )
        self.assertFalse(UploadedFile.objects.exists())

    @override_settings(COPY_UPLOAD_ASYNC_TIMEOUT=10)
    def test_transfer_exceeds_deadline(self, get_mock):
        get_mock.return_value = mock_response(self.content)

        with mock.patch("importer.upload.time") as time_mock:
            time_mock.monotonic.side_effect = [0.0, 4.0, 8.0, 12.0, 16.0]
            upload_from_url_task(self.payload())

        record = self.get_record()
        self.assertEqual(record["result"], "Failure")
        self.assertEqual(record["errors"][0]["code"], "http-timed-out")
        self.assertFalse(UploadedFile.objects.exists())

    def test_duplicate_is_stashed(self, get_mock):
        create_uploaded_file(name="Other.png", content=self.content)
        get_mock.return_value = mock_response(self.content)

        upload_from_url_task(self.payload())

        record = self.get_record()
        self.assertEqual(record["result"], "Warning")
        self.assertEqual(
            record["warnings"], [{"code": "duplicate", "detail": "Other.png"}]
        )
        stash = StashedUpload.objects.get(key=record["stash_key"])
        self.assertEqual(stash.user, self.user)
        self.assertEqual(stash.filename, "Example.png")
        self.assertFalse(UploadedFile.objects.filter(name="Example.png").exists())

    def test_ignore_warnings(self, get_mock):
        create_uploaded_file(name="Other.png", content=self.content)
        get_mock.return_value = mock_response(self.content)

        upload_from_url_task(self.payload(ignore_warnings=True))

        self.assertEqual(self.get_record()["result"], "Success")
        self.assertFalse(StashedUpload.objects.exists())
        self.assertEqual(UploadedFile.objects.count(), 2)

    def test_leave_message(self, get_mock):
        get_mock.return_value = mock_response(self.content)

        upload_from_url_task(
            job_payload(leave_message=True, session_id="", session_key="")
        )

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["tester@example.com"])
        self.assertEqual(mail.outbox[0].subject, "Upload of Example.png succeeded")
        # Only the record created in setUp exists
        session = load_session(self.session.session_key)
        self.assertEqual(
            session[mailbox.SESSION_KEYNAME], {"job-key": {"result": "Queued"}}
        )

    def test_leave_message_warning(self, get_mock):
        create_uploaded_file(name="Example.png")
        get_mock.return_value = mock_response(self.content)

        upload_from_url_task(
            job_payload(leave_message=True, session_id="", session_key="")
        )

        stash = StashedUpload.objects.get()
        self.assertIn(stash.key, mail.outbox[0].body)

    def test_session_gone(self, get_mock):
        get_mock.return_value = mock_response(self.content)
        self.session.delete()

        with self.assertLogs("importer.notifications", level="WARNING"):
            self.assertTrue(upload_from_url_task(self.payload()))

        # The upload itself is not undone
        self.assertTrue(UploadedFile.objects.filter(name="Example.png").exists())

    def test_default_timeout(self, get_mock):
        get_mock.return_value = mock_response(self.content)
        with self.settings(COPY_UPLOAD_TIMEOUT=180, COPY_UPLOAD_ASYNC_TIMEOUT=0):
            upload_from_url_task(self.payload())
        self.assertEqual(get_mock.call_args.kwargs["timeout"], 180)

    @override_settings(COPY_UPLOAD_ASYNC_TIMEOUT=15)
    def test_async_timeout(self, get_mock):
        get_mock.return_value = mock_response(self.content)
        upload_from_url_task(self.payload())
        get_mock.assert_called_once_with(
            "https://example.com/example.png", stream=True, timeout=15
        )

    def test_unknown_user(self, get_mock):
        with self.assertLogs("importer.tasks.uploads", level="ERROR"):
            self.assertTrue(upload_from_url_task(self.payload(username="nobody")))

        get_mock.assert_not_called()
        self.assertEqual(
            self.get_record(),
            {
                "result": "Failure",
                "errors": [
                    {"code": "invalid-job-parameters", "detail": "Unknown user nobody"}
                ],
            },
        )

    def test_invalid_payload(self, get_mock):
        with self.assertLogs("importer.tasks.uploads", level="ERROR"):
            self.assertTrue(upload_from_url_task(self.payload(watch="yes")))

        get_mock.assert_not_called()
        record = self.get_record()
        self.assertEqual(record["result"], "Failure")
        self.assertEqual(record["errors"][0]["code"], "invalid-job-parameters")

    def test_unreportable_payload(self, get_mock):
        with self.assertLogs("importer.tasks.uploads", level="WARNING") as log:
            self.assertTrue(upload_from_url_task(["not", "a", "payload"]))
        self.assertIn("no channel", log.output[-1])

    def test_dispatch_crash_is_logged(self, get_mock):
        get_mock.return_value = mock_response(self.content)
        with mock.patch.object(
            MailboxChannel, "deliver", side_effect=RuntimeError("boom")
        ):
            with self.assertLogs("importer.tasks.uploads", level="ERROR"):
                self.assertTrue(upload_from_url_task(self.payload()))


class ChannelFromPayloadTests(TestCase):
    def test_mailbox(self):
        channel = channel_from_payload(job_payload(session_id="abc"))
        self.assertIsInstance(channel, MailboxChannel)
        self.assertEqual(channel.session_key, "job-key")

    def test_direct_message(self):
        channel = channel_from_payload(job_payload(leave_message=True))
        self.assertIsInstance(channel, DirectMessageChannel)
        self.assertEqual(channel.username, "tester")

    def test_no_channel(self):
        self.assertIsNone(channel_from_payload(None))
        self.assertIsNone(channel_from_payload(job_payload()))
        self.assertIsNone(channel_from_payload(job_payload(leave_message="yes")))
        self.assertIsNone(
            channel_from_payload(job_payload(leave_message=True, username=""))
        )
