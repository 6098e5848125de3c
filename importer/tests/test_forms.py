from django.test import SimpleTestCase

from importer.forms import UploadFromUrlForm


class UploadFromUrlFormTests(SimpleTestCase):
    def test_valid(self):
        form = UploadFromUrlForm(
            {
                "url": "https://example.com/a.png",
                "filename": "  An  example.png ",
                "watch": "on",
            }
        )
        self.assertTrue(form.is_valid())
        self.assertEqual(form.cleaned_data["filename"], "An_example.png")
        self.assertTrue(form.cleaned_data["watch"])
        self.assertFalse(form.cleaned_data["ignore_warnings"])
        self.assertFalse(form.cleaned_data["leave_message"])
        self.assertEqual(form.cleaned_data["comment"], "")

    def test_scheme_is_assumed(self):
        form = UploadFromUrlForm({"url": "example.com/a.png", "filename": "a.png"})
        self.assertTrue(form.is_valid())
        self.assertEqual(form.cleaned_data["url"], "https://example.com/a.png")

    def test_required_fields(self):
        form = UploadFromUrlForm({})
        self.assertFalse(form.is_valid())
        self.assertIn("url", form.errors)
        self.assertIn("filename", form.errors)
