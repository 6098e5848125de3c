from django.urls import path

from . import views

app_name = "importer"

urlpatterns = [
    path("upload/url/", views.upload_from_url, name="upload-from-url"),
    path(
        "upload/url/<str:session_key>/",
        views.upload_from_url_status,
        name="upload-from-url-status",
    ),
    path(
        "upload/stash/<str:stash_key>/resume/",
        views.resume_stashed_upload,
        name="resume-stashed-upload",
    ),
    path(
        "upload/stash/<str:stash_key>/discard/",
        views.discard_stashed_upload,
        name="discard-stashed-upload",
    ),
]
