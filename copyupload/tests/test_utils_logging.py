from types import SimpleNamespace

from django.contrib.auth.models import AnonymousUser, User
from django.test import TestCase

from copyupload.utils.logging import get_logging_user_id


class LoggingUserIdTests(TestCase):
    def test_authenticated_user(self):
        user = User.objects.create_user(username="tester")
        self.assertEqual(get_logging_user_id(user), str(user.id))

    def test_anonymous_user(self):
        self.assertEqual(get_logging_user_id(AnonymousUser()), "anonymous")

    def test_missing_auth_attribute(self):
        self.assertEqual(get_logging_user_id(object()), "anonymous")

    def test_authenticated_without_id(self):
        user = SimpleNamespace(is_authenticated=True, username="someuser")
        self.assertEqual(get_logging_user_id(user), "anonymous")
