"""
Stored uploads and stashed uploads awaiting confirmation. The import process is
described in the ``importer`` package docstring.
"""

import hashlib
from logging import getLogger

from django.conf import settings
from django.db import models

from copyupload.storage import STASH_STORAGE, UPLOAD_STORAGE

logger = getLogger(__name__)


def get_upload_path(instance, filename):
    # Spread files across directories by the hash of their name
    digest = hashlib.md5(instance.name.encode("utf-8"), usedforsecurity=False)
    digest = digest.hexdigest()
    return "/".join([digest[:1], digest[:2], filename])


def get_stash_path(instance, filename):
    return "/".join([str(instance.user_id), instance.key])


class UploadedFile(models.Model):
    """
    A file which has been committed to the content store under ``name``
    """

    created = models.DateTimeField(auto_now_add=True)
    modified = models.DateTimeField(auto_now=True)

    name = models.CharField(max_length=255, unique=True)

    file = models.FileField(
        upload_to=get_upload_path, storage=UPLOAD_STORAGE, max_length=255
    )

    sha1 = models.CharField(
        help_text="SHA-1 hex digest of the file contents", max_length=40, db_index=True
    )
    size = models.PositiveBigIntegerField(help_text="Size of the file in bytes")
    mime_type = models.CharField(max_length=255, blank=True, default="")

    source_url = models.URLField(
        help_text="URL the file was copied from", max_length=2000, blank=True
    )

    comment = models.TextField(
        help_text="Upload summary provided by the uploader", blank=True, default=""
    )
    description = models.TextField(
        help_text="Text of the file's description page", blank=True, default=""
    )

    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        on_delete=models.SET_NULL,
        related_name="uploaded_files",
    )

    watchers = models.ManyToManyField(
        settings.AUTH_USER_MODEL, blank=True, related_name="watched_uploads"
    )

    class Meta:
        ordering = ("name",)

    def __str__(self):
        return "UploadedFile(name=%s, uploaded_by=%s)" % (
            self.name,
            self.uploaded_by.username if self.uploaded_by else None,
        )


class StashedUpload(models.Model):
    """
    A fetched file held back from the content store because the upload raised
    warnings. The user who requested the upload can later commit or discard it
    using ``key``.
    """

    created = models.DateTimeField(auto_now_add=True)

    key = models.CharField(max_length=64, unique=True)

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="stashed_uploads",
    )

    file = models.FileField(
        upload_to=get_stash_path, storage=STASH_STORAGE, max_length=255
    )

    filename = models.CharField(
        help_text="Name the file was to be uploaded as", max_length=255
    )
    source_url = models.URLField(max_length=2000, blank=True)

    sha1 = models.CharField(max_length=40)
    size = models.PositiveBigIntegerField()
    mime_type = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        ordering = ("-created",)

    def __str__(self):
        return "StashedUpload(key=%s, user=%s, filename=%s)" % (
            self.key,
            self.user.username,
            self.filename,
        )

    def discard(self):
        """
        Delete the stashed file and this record
        """
        logger.info("Discarding stashed upload %s", self)
        if self.file:
            self.file.delete(save=False)
        self.delete()
