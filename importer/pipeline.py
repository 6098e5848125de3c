"""
The upload-by-URL state machine.

A run moves through fetch, verify, warning check and commit in that order and
stops at the first stage which cannot proceed. Nothing is retried and there is
no transaction around the run: a warning leaves a stashed file behind and a
commit is final. Every run ends with exactly one ``ImportOutcome``; stage
failures are returned as ``UploadFailure`` rather than raised.
"""

from dataclasses import dataclass
from logging import getLogger
from typing import Optional

from django.db import models

from copyupload.logging import StructuredLogger

from .exceptions import CommitError, TransportError, UploadError
from .outcomes import ImportOutcome, UploadFailure, UploadSuccess, UploadWarning
from .upload import UploadFromUrl

logger = getLogger(__name__)
structured_logger = StructuredLogger.get_logger(__name__)


class PipelineStage(models.TextChoices):
    INITIALIZE = "initialize"
    FETCH = "fetch"
    VERIFY = "verify"
    WARNING_CHECK = "warning-check"
    COMMIT = "commit"
    FINISHED = "finished"


@dataclass(frozen=True)
class PipelineOptions:
    #: Seconds allowed for the fetch. ``None`` or 0 keeps the transport default.
    timeout: Optional[float] = None


class ImportPipeline:
    upload_class = UploadFromUrl

    def __init__(self, parameters, user, options=None, upload=None):
        self.parameters = parameters
        self.user = user
        self.options = options or PipelineOptions()
        self.upload = upload
        self.stage = PipelineStage.INITIALIZE
        self.log = structured_logger.bind(job=parameters, user=user)

    def run(self) -> ImportOutcome:
        try:
            outcome = self._run()
        except UploadError as exc:
            outcome = UploadFailure.from_exception(exc)
        except Exception as exc:
            logger.exception(
                "Unhandled exception during %s stage of %s",
                self.stage,
                self.parameters,
            )
            self.log.exception(
                "Upload stage raised an unexpected exception.",
                event_code="upload_stage_crashed",
                reason=str(exc),
                reason_code="internal-error",
                stage=self.stage.value,
            )
            outcome = UploadFailure.from_code("internal-error", str(exc))
        finally:
            if self.upload is not None:
                self.upload.cleanup()

        if not outcome.is_ok:
            self.log.info(
                "Upload finished without storing the file.",
                event_code="upload_finished",
                result=outcome.kind.value,
                stage=self.stage.value,
            )
        self.stage = PipelineStage.FINISHED
        return outcome

    def _run(self) -> ImportOutcome:
        parameters = self.parameters

        if self.upload is None:
            self.upload = self.upload_class(parameters.filename, parameters.url)

        self.stage = PipelineStage.FETCH
        try:
            self.upload.fetch_file(timeout=self.options.timeout or None)
        except TransportError as exc:
            self.log.warning(
                "Unable to fetch the remote file.",
                event_code="upload_fetch_failed",
                reason=exc.detail or exc.code,
                reason_code=exc.code,
            )
            return UploadFailure.from_exception(exc)

        self.stage = PipelineStage.VERIFY
        verification = self.upload.verify_upload()
        if not verification.ok:
            self.log.warning(
                "Fetched file failed verification.",
                event_code="upload_verification_failed",
                reason=verification.detail or verification.code,
                reason_code=verification.code,
            )
            return UploadFailure.from_exception(verification.as_error())

        if not parameters.ignore_warnings:
            self.stage = PipelineStage.WARNING_CHECK
            warnings = self.upload.check_warnings()
            if warnings:
                stash_key = self.upload.stash_file(self.user)
                self.log.info(
                    "Upload raised warnings and was stashed.",
                    event_code="upload_stashed",
                    stash_key=stash_key,
                    warning_codes=[i["code"] for i in warnings],
                )
                return UploadWarning(stash_key=stash_key, warnings=warnings)

        self.stage = PipelineStage.COMMIT
        try:
            filename = self.upload.perform_upload(
                parameters.comment,
                parameters.page_text,
                parameters.watch,
                self.user,
            )
        except CommitError as exc:
            self.log.error(
                "Unable to store the fetched file.",
                event_code="upload_commit_failed",
                reason=exc.detail or exc.code,
                reason_code=exc.code,
            )
            return UploadFailure.from_exception(exc)

        self.log.info(
            "Upload committed.", event_code="upload_committed", stored_name=filename
        )
        return UploadSuccess(filename=filename)
