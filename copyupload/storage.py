from django.core.files.storage import storages
from django.utils.functional import LazyObject


class LazyUploadStorage(LazyObject):
    def _setup(self):
        self._wrapped = storages["uploads"]


class LazyStashStorage(LazyObject):
    def _setup(self):
        self._wrapped = storages["stash"]


# We use a LazyObject so the value isn't evaluated when the code is loaded,
# which is needed to override the setting during tests

UPLOAD_STORAGE = LazyUploadStorage()

STASH_STORAGE = LazyStashStorage()
