import os

from django.db import IntegrityError
from django.test import TestCase

from importer.models import (
    StashedUpload,
    UploadedFile,
    get_stash_path,
    get_upload_path,
)

from .utils import create_stashed_upload, create_uploaded_file, create_user


class UploadedFileTests(TestCase):
    def test_str(self):
        user = create_user()
        uploaded = create_uploaded_file(name="A.png", uploaded_by=user)
        self.assertEqual(str(uploaded), "UploadedFile(name=A.png, uploaded_by=tester)")

    def test_upload_path(self):
        path = get_upload_path(UploadedFile(name="A.png"), "A.png")
        first, second, filename = path.split("/")
        self.assertEqual(len(first), 1)
        self.assertTrue(second.startswith(first))
        self.assertEqual(filename, "A.png")
        self.assertEqual(path, get_upload_path(UploadedFile(name="A.png"), "A.png"))

    def test_name_is_unique(self):
        create_uploaded_file(name="A.png")
        with self.assertRaises(IntegrityError):
            UploadedFile.objects.create(name="A.png", sha1="0" * 40, size=1)

    def test_uploader_deletion_keeps_file(self):
        user = create_user()
        uploaded = create_uploaded_file(name="A.png", uploaded_by=user)
        user.delete()
        uploaded.refresh_from_db()
        self.assertIsNone(uploaded.uploaded_by)


class StashedUploadTests(TestCase):
    def test_str(self):
        stash = create_stashed_upload(key="k.png")
        self.assertEqual(
            str(stash), "StashedUpload(key=k.png, user=tester, filename=Stashed.png)"
        )

    def test_stash_path(self):
        stash = StashedUpload(key="k.png", user_id=12)
        self.assertEqual(get_stash_path(stash, "ignored.png"), "12/k.png")

    def test_discard(self):
        stash = create_stashed_upload()
        path = stash.file.path
        self.assertTrue(os.path.exists(path))

        stash.discard()

        self.assertFalse(os.path.exists(path))
        self.assertFalse(StashedUpload.objects.exists())

    def test_discard_without_file(self):
        user = create_user()
        stash = StashedUpload.objects.create(
            key="k.png", user=user, filename="K.png", sha1="0" * 40, size=1
        )
        stash.discard()
        self.assertFalse(StashedUpload.objects.exists())
