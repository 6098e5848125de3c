"""
Celery tasks for the importer. See the ``importer`` module docstring for the
overall design.
"""

from .uploads import upload_from_url_task

__all__ = ["upload_from_url_task"]
