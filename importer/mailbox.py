"""
Result mailbox for queued uploads.

The user's request returns long before the worker finishes, so the worker
leaves the result in the user's session where the next poll can find it. All
records live in one session entry, ``SESSION_KEYNAME``, as a mapping of
``session_key`` (one per queued job) to that job's record.

Each write replaces the whole record for one key, and the container mapping is
copied before it is changed, so a reader holding the previous value never sees
a half-written record. The record helpers do not save the session.

Sessions are saved whole, so two writers which loaded the same session would
overwrite each other's records. Writers outside the request cycle use
``locked_session``, which reloads the session while holding a lock on its
database row; the lock is only available with a database-backed session
engine.
"""

from contextlib import contextmanager
from importlib import import_module
from logging import getLogger

from django.conf import settings
from django.db import transaction

from .outcomes import ImportResult

logger = getLogger(__name__)

SESSION_KEYNAME = "copyUploadFromUrlJobData"


def get_session(session_id):
    """
    Load the session ``session_id`` from the configured session engine, or
    return None if it does not exist (expired, logged out or never saved).
    """
    if not session_id:
        return None
    engine = import_module(settings.SESSION_ENGINE)
    if not engine.SessionStore().exists(session_id):
        return None
    return engine.SessionStore(session_key=session_id)


def lock_session_row(session_id):
    """
    Lock the database row of session ``session_id`` until the current
    transaction ends. Returns False if the session engine has no row to lock.
    """
    store_class = import_module(settings.SESSION_ENGINE).SessionStore
    if not hasattr(store_class, "get_model_class"):
        return False
    model = store_class.get_model_class()
    model.objects.select_for_update().filter(session_key=session_id).first()
    return True


@contextmanager
def locked_session(session_id):
    """
    Yield session ``session_id`` loaded after taking its row lock, or None if
    the session does not exist. Save the session before leaving the block.
    """
    with transaction.atomic():
        if not lock_session_row(session_id):
            logger.debug(
                "%s cannot lock sessions, mailbox writes are not serialized",
                settings.SESSION_ENGINE,
            )
        # Sessions load lazily, so the records are read after the lock is held
        yield get_session(session_id)


def _get_container(session):
    data = session.get(SESSION_KEYNAME)
    if not isinstance(data, dict):
        return {}
    return data


def read_session_data(session, key):
    """
    Return a copy of the record stored for ``key``, or an empty mapping,
    without changing the session
    """
    record = _get_container(session).get(key)
    if not isinstance(record, dict):
        if record is not None:
            logger.warning("Ignoring malformed upload record for %s: %r", key, record)
        return {}
    return dict(record)


def get_session_data(session, key):
    """
    Return the record stored for ``key``.

    A missing or malformed record is replaced by an empty mapping, which is
    stored and returned.
    """
    record = _get_container(session).get(key)
    if not isinstance(record, dict):
        if record is not None:
            logger.warning(
                "Discarding malformed upload record for %s: %r", key, record
            )
        set_session_data(session, key, {})
        return {}
    return dict(record)


def set_session_data(session, key, value):
    """
    Replace the record stored for ``key``, keeping every other key's record
    """
    data = dict(_get_container(session))
    data[key] = dict(value)
    session[SESSION_KEYNAME] = data


def initialize_session_data(session, key):
    """
    Mark the job identified by ``key`` as queued.

    This must run before the job is handed to the queue so that a poll never
    finds no record for a job which has been accepted.
    """
    data = get_session_data(session, key)
    data["result"] = ImportResult.QUEUED.value
    set_session_data(session, key, data)
    return data


def store_result(session, key, outcome):
    """
    Replace the record for ``key`` with the record for a terminal outcome
    """
    record = outcome.as_record()
    set_session_data(session, key, record)
    return record
