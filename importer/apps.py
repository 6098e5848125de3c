from django.apps import AppConfig


class ImporterConfig(AppConfig):
    name = "importer"
    verbose_name = "Upload by URL"
    default_auto_field = "django.db.models.AutoField"
