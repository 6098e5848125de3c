from django import forms


class UploadFromUrlForm(forms.Form):
    url = forms.URLField(max_length=2000, assume_scheme="https")
    filename = forms.CharField(max_length=240)
    comment = forms.CharField(required=False, widget=forms.Textarea)
    page_text = forms.CharField(required=False, widget=forms.Textarea)
    watch = forms.BooleanField(required=False)
    ignore_warnings = forms.BooleanField(required=False)
    leave_message = forms.BooleanField(
        required=False,
        help_text="E-mail the result instead of making it available to this session",
    )

    def clean_filename(self):
        # Names are stored with underscores, as they are shown in URLs
        return "_".join(self.cleaned_data["filename"].split())
