"""
Fetching, checking and storing a single file copied from a remote URL.

``UploadFromUrl`` is the handle the pipeline drives. Each method performs one
stage and either returns data or raises one of the ``importer.exceptions``
classes; none of them decide what happens next.
"""

import hashlib
import mimetypes
import os
import re
import time
import uuid
from dataclasses import dataclass
from logging import getLogger
from tempfile import NamedTemporaryFile
from typing import Optional
from urllib.parse import urlparse

import requests
from django.conf import settings
from django.core.files import File
from django.db import DatabaseError, transaction
from django.utils.text import get_valid_filename
from PIL import Image, UnidentifiedImageError
from urllib3.exceptions import ReadTimeoutError

from .exceptions import CommitError, TransportError, VerificationError
from .models import StashedUpload, UploadedFile

logger = getLogger(__name__)

CHUNK_SIZE = 256 * 1024

IMAGE_EXTENSIONS = {"gif", "jpeg", "jpg", "png", "tif", "tiff", "webp"}

ILLEGAL_FILENAME_RE = re.compile(r"[\x00-\x1f\x7f/\\:#<>\[\]|{}]")


@dataclass
class FetchedContent:
    path: str
    size: int
    sha1: str
    mime_type: str
    url: str


@dataclass
class VerificationResult:
    ok: bool
    code: str = ""
    detail: str = ""

    def as_error(self) -> VerificationError:
        return VerificationError(self.detail, code=self.code)


VERIFIED = VerificationResult(ok=True)


def get_extension(filename):
    return os.path.splitext(filename)[1].lstrip(".").lower()


def _guess_mime_type(content_type, url_path):
    if content_type:
        mime_type = content_type.split(";")[0].strip().lower()
        if mime_type and mime_type != "application/octet-stream":
            return mime_type
    guessed, _ = mimetypes.guess_type(url_path)
    return guessed or "application/octet-stream"


def is_allowed_domain(url):
    """
    Return True if ``url``'s host may be fetched from. An empty
    ``COPY_UPLOAD_DOMAINS`` allows every host; entries starting with a dot
    match any subdomain.
    """
    domains = getattr(settings, "COPY_UPLOAD_DOMAINS", [])
    if not domains:
        return True
    host = (urlparse(url).hostname or "").lower()
    for domain in domains:
        domain = domain.lower()
        if domain.startswith("."):
            if host.endswith(domain) or host == domain[1:]:
                return True
        elif host == domain:
            return True
    return False


class UploadFromUrl:
    def __init__(self, filename: str, url: str):
        self.filename = filename
        self.url = url
        self.fetched: Optional[FetchedContent] = None

    def __str__(self):
        return "UploadFromUrl(filename=%s, url=%s)" % (self.filename, self.url)

    def fetch_file(self, timeout: Optional[float] = None) -> FetchedContent:
        """
        Download the remote file to a temporary file.

        ``timeout`` overrides ``COPY_UPLOAD_TIMEOUT`` when set.

        Raises:
            TransportError: The URL could not be fetched or the response body
                is larger than ``COPY_UPLOAD_MAX_SIZE``.
        """
        parsed = urlparse(self.url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise TransportError(self.url, code="http-invalid-url")
        if not is_allowed_domain(self.url):
            raise TransportError(parsed.hostname, code="copyupload-blacklisted-domain")

        if not timeout:
            timeout = settings.COPY_UPLOAD_TIMEOUT
        max_size = settings.COPY_UPLOAD_MAX_SIZE

        hasher = hashlib.sha1(usedforsecurity=False)
        size = 0
        # requests only bounds each socket read, the deadline bounds the transfer
        deadline = time.monotonic() + timeout
        completed = False
        # The temporary file is removed by cleanup() once the run is finished
        temp_file = NamedTemporaryFile(mode="w+b", prefix="copyupload-", delete=False)
        try:
            with temp_file, requests.get(
                self.url, stream=True, timeout=timeout
            ) as resp:
                resp.raise_for_status()

                content_length = resp.headers.get("Content-Length")
                if content_length and content_length.isdigit():
                    if int(content_length) > max_size:
                        raise TransportError(
                            f"Content-Length {content_length} exceeds {max_size}",
                            code="file-too-large",
                        )

                for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                    if time.monotonic() > deadline:
                        raise TransportError(
                            f"Transfer did not finish within {timeout} seconds",
                            code="http-timed-out",
                        )
                    if not chunk:
                        continue
                    size += len(chunk)
                    if size > max_size:
                        raise TransportError(
                            f"Response body exceeds {max_size} bytes",
                            code="file-too-large",
                        )
                    temp_file.write(chunk)
                    hasher.update(chunk)

                content_type = resp.headers.get("Content-Type")
            completed = True
        except requests.Timeout as exc:
            raise TransportError(str(exc), code="http-timed-out") from exc
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else ""
            raise TransportError(str(status), code="http-bad-status") from exc
        except requests.ConnectionError as exc:
            # A read timeout while the body streams is raised as ConnectionError
            if exc.args and isinstance(exc.args[0], ReadTimeoutError):
                raise TransportError(str(exc), code="http-timed-out") from exc
            raise TransportError(str(exc), code="http-request-error") from exc
        except requests.RequestException as exc:
            raise TransportError(str(exc), code="http-request-error") from exc
        finally:
            if not completed:
                os.unlink(temp_file.name)

        self.fetched = FetchedContent(
            path=temp_file.name,
            size=size,
            sha1=hasher.hexdigest(),
            mime_type=_guess_mime_type(content_type, parsed.path),
            url=self.url,
        )
        logger.info(
            "Fetched %s (%s bytes, sha1 %s)", self.url, size, self.fetched.sha1
        )
        return self.fetched

    def verify_upload(self) -> VerificationResult:
        """
        Check the fetched file and the destination name. The first problem
        found is returned; ``VERIFIED`` means the file may be stored.
        """
        fetched = self._require_fetched()

        if fetched.size == 0:
            return VerificationResult(False, "empty-file", "The file is empty")

        if fetched.size > settings.COPY_UPLOAD_MAX_SIZE:
            return VerificationResult(
                False,
                "file-too-large",
                f"{fetched.size} bytes exceeds {settings.COPY_UPLOAD_MAX_SIZE}",
            )

        if (
            not self.filename
            or len(self.filename) > 240
            or self.filename.startswith(".")
            or ILLEGAL_FILENAME_RE.search(self.filename)
        ):
            return VerificationResult(False, "illegal-filename", self.filename)

        extension = get_extension(self.filename)
        if extension not in settings.COPY_UPLOAD_ALLOWED_EXTENSIONS:
            return VerificationResult(
                False, "filetype-banned", extension or "(no extension)"
            )

        if extension in IMAGE_EXTENSIONS:
            try:
                with Image.open(fetched.path) as img:
                    img.verify()
            except (UnidentifiedImageError, OSError, SyntaxError) as exc:
                return VerificationResult(
                    False, "verification-error", f"Not a valid image: {exc}"
                )

        return VERIFIED

    def check_warnings(self) -> list[dict]:
        """
        Return conditions the user must acknowledge before the file is stored
        """
        fetched = self._require_fetched()
        warnings = []

        if UploadedFile.objects.filter(name=self.filename).exists():
            warnings.append({"code": "exists", "detail": self.filename})

        duplicates = list(
            UploadedFile.objects.filter(sha1=fetched.sha1)
            .exclude(name=self.filename)
            .values_list("name", flat=True)
        )
        if duplicates:
            warnings.append({"code": "duplicate", "detail": ", ".join(duplicates)})

        if fetched.size > settings.COPY_UPLOAD_LARGE_FILE_SIZE:
            warnings.append({"code": "large-file", "detail": str(fetched.size)})

        return warnings

    def stash_file(self, user) -> str:
        """
        Keep the fetched file so the upload can be resumed later and return
        the stash key
        """
        fetched = self._require_fetched()
        extension = get_extension(self.filename)
        key = uuid.uuid4().hex
        if extension:
            key = f"{key}.{extension}"

        stash = StashedUpload(
            key=key,
            user=user,
            filename=self.filename,
            source_url=fetched.url,
            sha1=fetched.sha1,
            size=fetched.size,
            mime_type=fetched.mime_type,
        )
        with open(fetched.path, "rb") as f:
            stash.file.save(key, File(f), save=False)
        stash.save()
        logger.info("Stashed %s as %s", self, key)
        return key

    def perform_upload(self, comment, page_text, watch, user) -> str:
        """
        Store the fetched file as ``self.filename``, replacing the current
        version if there is one, and return the stored name.

        Raises:
            CommitError: The file or its record could not be written.
        """
        fetched = self._require_fetched()
        storage_name = get_valid_filename(self.filename)

        try:
            with transaction.atomic():
                qs = UploadedFile.objects.select_for_update()
                uploaded, created = qs.get_or_create(
                    name=self.filename,
                    defaults={"sha1": fetched.sha1, "size": fetched.size},
                )
                old_file = uploaded.file.name if not created else ""

                uploaded.sha1 = fetched.sha1
                uploaded.size = fetched.size
                uploaded.mime_type = fetched.mime_type
                uploaded.source_url = fetched.url
                uploaded.comment = comment
                uploaded.description = page_text
                uploaded.uploaded_by = user
                with open(fetched.path, "rb") as f:
                    uploaded.file.save(storage_name, File(f), save=False)
                uploaded.save()

                if watch:
                    uploaded.watchers.add(user)
        except (OSError, DatabaseError) as exc:
            logger.exception("Unable to store %s", self)
            raise CommitError(str(exc)) from exc

        if old_file and old_file != uploaded.file.name:
            uploaded.file.storage.delete(old_file)

        logger.info("Stored %s as %s", self, uploaded.file.name)
        return uploaded.name

    def cleanup(self):
        """Remove the temporary copy of the fetched file, if any"""
        if self.fetched and os.path.exists(self.fetched.path):
            os.unlink(self.fetched.path)

    def _require_fetched(self) -> FetchedContent:
        if self.fetched is None:
            raise RuntimeError(f"{self} has not fetched a file yet")
        return self.fetched


class UploadFromStash(UploadFromUrl):
    """
    Resume an upload from a ``StashedUpload`` instead of the remote URL
    """

    def __init__(self, stash: StashedUpload):
        super().__init__(stash.filename, stash.source_url)
        self.stash = stash

    def fetch_file(self, timeout=None):
        with (
            NamedTemporaryFile(
                mode="w+b", prefix="copyupload-", delete=False
            ) as temp_file,
            self.stash.file.open("rb") as stashed,
        ):
            for chunk in stashed.chunks(CHUNK_SIZE):
                temp_file.write(chunk)

        self.fetched = FetchedContent(
            path=temp_file.name,
            size=self.stash.size,
            sha1=self.stash.sha1,
            mime_type=self.stash.mime_type,
            url=self.stash.source_url,
        )
        return self.fetched
