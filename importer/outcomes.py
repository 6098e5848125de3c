"""
Terminal outcomes of an upload-by-URL run.

Each run of the pipeline produces exactly one of ``UploadSuccess``,
``UploadWarning`` or ``UploadFailure``. Outcomes know how to render
themselves as the mailbox record stored in the user's session, which is the
only persisted shape this app defines::

    {"result": "Queued"}
    {"result": "Success", "filename": "Example.jpg"}
    {"result": "Warning", "warnings": [...], "stash_key": "3f2a....jpg"}
    {"result": "Failure", "errors": [{"code": "http-timed-out", "detail": ""}]}
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar

from django.db import models


class ImportResult(models.TextChoices):
    QUEUED = "Queued"
    SUCCESS = "Success"
    WARNING = "Warning"
    FAILURE = "Failure"


@dataclass(frozen=True)
class ImportOutcome:
    kind: ClassVar[ImportResult]

    def as_record(self) -> dict[str, Any]:
        raise NotImplementedError

    @property
    def is_ok(self) -> bool:
        return self.kind == ImportResult.SUCCESS


@dataclass(frozen=True)
class UploadSuccess(ImportOutcome):
    kind: ClassVar[ImportResult] = ImportResult.SUCCESS

    filename: str

    def as_record(self):
        return {"result": self.kind.value, "filename": self.filename}


@dataclass(frozen=True)
class UploadWarning(ImportOutcome):
    kind: ClassVar[ImportResult] = ImportResult.WARNING

    stash_key: str
    warnings: list = field(default_factory=list)

    def as_record(self):
        return {
            "result": self.kind.value,
            "warnings": [dict(i) for i in self.warnings],
            "stash_key": self.stash_key,
        }


@dataclass(frozen=True)
class UploadFailure(ImportOutcome):
    kind: ClassVar[ImportResult] = ImportResult.FAILURE

    errors: list = field(default_factory=list)

    @classmethod
    def from_exception(cls, exc):
        return cls(errors=[exc.as_dict()])

    @classmethod
    def from_code(cls, code, detail=""):
        return cls(errors=[{"code": code, "detail": detail}])

    @property
    def error_codes(self):
        return [i["code"] for i in self.errors]

    def as_record(self):
        return {"result": self.kind.value, "errors": [dict(i) for i in self.errors]}


def queued_record() -> dict[str, Any]:
    return {"result": ImportResult.QUEUED.value}
