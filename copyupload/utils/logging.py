from typing import Any


def get_logging_user_id(user: Any) -> str:
    """
    Return a consistent identifier for a user in log output.

    Anonymous users, and user objects without a primary key, are reported as
    "anonymous".
    """
    if not getattr(user, "is_authenticated", False):
        return "anonymous"

    user_id = getattr(user, "id", None)
    if user_id is None:
        return "anonymous"

    return str(user_id)
