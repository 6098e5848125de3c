import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import copyupload.storage
import importer.models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="UploadedFile",
            fields=[
                (
                    "id",
                    models.AutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("created", models.DateTimeField(auto_now_add=True)),
                ("modified", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=255, unique=True)),
                (
                    "file",
                    models.FileField(
                        max_length=255,
                        storage=copyupload.storage.UPLOAD_STORAGE,
                        upload_to=importer.models.get_upload_path,
                    ),
                ),
                (
                    "sha1",
                    models.CharField(
                        db_index=True,
                        help_text="SHA-1 hex digest of the file contents",
                        max_length=40,
                    ),
                ),
                (
                    "size",
                    models.PositiveBigIntegerField(
                        help_text="Size of the file in bytes"
                    ),
                ),
                (
                    "mime_type",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                (
                    "source_url",
                    models.URLField(
                        blank=True,
                        help_text="URL the file was copied from",
                        max_length=2000,
                    ),
                ),
                (
                    "comment",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Upload summary provided by the uploader",
                    ),
                ),
                (
                    "description",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Text of the file's description page",
                    ),
                ),
                (
                    "uploaded_by",
                    models.ForeignKey(
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="uploaded_files",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "watchers",
                    models.ManyToManyField(
                        blank=True,
                        related_name="watched_uploads",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ("name",),
            },
        ),
        migrations.CreateModel(
            name="StashedUpload",
            fields=[
                (
                    "id",
                    models.AutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("created", models.DateTimeField(auto_now_add=True)),
                ("key", models.CharField(max_length=64, unique=True)),
                (
                    "file",
                    models.FileField(
                        max_length=255,
                        storage=copyupload.storage.STASH_STORAGE,
                        upload_to=importer.models.get_stash_path,
                    ),
                ),
                (
                    "filename",
                    models.CharField(
                        help_text="Name the file was to be uploaded as",
                        max_length=255,
                    ),
                ),
                ("source_url", models.URLField(blank=True, max_length=2000)),
                ("sha1", models.CharField(max_length=40)),
                ("size", models.PositiveBigIntegerField()),
                (
                    "mime_type",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="stashed_uploads",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ("-created",),
            },
        ),
    ]
