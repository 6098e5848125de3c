import hashlib
import io
from importlib import import_module
from unittest import mock

import requests
from django.conf import settings
from django.contrib.auth.models import User
from django.core.files.base import ContentFile
from PIL import Image
from urllib3.exceptions import ReadTimeoutError

from importer.models import StashedUpload, UploadedFile


def create_user(*, username="tester", email="tester@example.com", **kwargs):
    user = User.objects.create_user(
        username=username, email=email, password="top-secret", **kwargs  # nosec
    )
    return user


def create_session():
    """Create and save a session in the configured session engine"""
    session = import_module(settings.SESSION_ENGINE).SessionStore()
    session.create()
    return session


def load_session(session_key):
    return import_module(settings.SESSION_ENGINE).SessionStore(session_key=session_key)


def make_png(size=(2, 2), color="red"):
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, "PNG")
    return buf.getvalue()


def create_uploaded_file(
    *, name="Existing.png", content=None, sha1=None, uploaded_by=None, **kwargs
):
    if content is None:
        content = make_png()
    if sha1 is None:
        sha1 = hashlib.sha1(content, usedforsecurity=False).hexdigest()
    uploaded = UploadedFile(
        name=name,
        sha1=sha1,
        size=len(content),
        uploaded_by=uploaded_by,
        **kwargs,
    )
    uploaded.file.save(name, ContentFile(content), save=False)
    uploaded.save()
    return uploaded


def create_stashed_upload(
    *, user=None, key="0123456789abcdef.png", filename="Stashed.png", content=None
):
    if user is None:
        user = create_user()
    if content is None:
        content = make_png()
    stash = StashedUpload(
        key=key,
        user=user,
        filename=filename,
        source_url="https://example.com/stashed.png",
        sha1=hashlib.sha1(content, usedforsecurity=False).hexdigest(),
        size=len(content),
        mime_type="image/png",
    )
    stash.file.save(key, ContentFile(content), save=False)
    stash.save()
    return stash


def mock_response(content=b"", status_code=200, headers=None, chunk_size=4):
    """
    Build a stand-in for a streamed ``requests`` response which can be used
    as a context manager
    """
    resp = mock.MagicMock()
    resp.__enter__.return_value = resp
    resp.__exit__.return_value = False
    resp.status_code = status_code
    resp.headers = headers if headers is not None else {}
    resp.iter_content.return_value = [
        content[i : i + chunk_size] for i in range(0, len(content), chunk_size)
    ]
    if status_code >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(
            f"{status_code} Error", response=resp
        )
    else:
        resp.raise_for_status.return_value = None
    return resp


def read_timeout_error(url="https://example.com/example.png"):
    """
    The error requests raises when a read times out while the body streams
    """
    return requests.ConnectionError(ReadTimeoutError(None, url, "Read timed out."))


def stalled_response(content=b"", **kwargs):
    """
    Build a streamed response whose connection times out once ``content``
    has been read
    """
    resp = mock_response(content, **kwargs)
    chunks = resp.iter_content.return_value

    def iter_content(chunk_size=1):
        yield from chunks
        raise read_timeout_error()

    resp.iter_content.side_effect = iter_content
    return resp


def job_payload(**kwargs):
    payload = {
        "filename": "Example.png",
        "url": "https://example.com/example.png",
        "username": "tester",
        "comment": "Copied from example.com",
        "page_text": "An example image",
        "watch": False,
        "ignore_warnings": False,
        "leave_message": False,
        "session_id": "",
        "session_key": "job-key",
    }
    payload.update(kwargs)
    return payload
