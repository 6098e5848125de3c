from django.contrib.auth.decorators import login_required
from django.http import HttpRequest, JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.cache import never_cache
from django.views.decorators.http import require_GET, require_POST

from copyupload.logging import StructuredLogger

from .forms import UploadFromUrlForm
from .jobs import JobParameters, enqueue_upload_from_url
from .mailbox import read_session_data
from .models import StashedUpload
from .outcomes import ImportResult
from .pipeline import ImportPipeline
from .upload import UploadFromStash

structured_logger = StructuredLogger.get_logger(__name__)


@require_POST
@login_required
def upload_from_url(request: HttpRequest) -> JsonResponse:
    """
    Queue an upload of a remote file.

    Response Format - Success (202):
        - `result` (str): Always "Queued".
        - `session_key` (str): Key to poll the result with. Empty when the
          result will be e-mailed instead.

    Response Format - Error (400):
        - `errors` (dict): Form field errors.
    """
    form = UploadFromUrlForm(request.POST)
    if not form.is_valid():
        return JsonResponse({"errors": form.errors}, status=400)

    parameters = enqueue_upload_from_url(request, **form.cleaned_data)

    return JsonResponse(
        {
            "result": ImportResult.QUEUED.value,
            "session_key": parameters.session_key,
        },
        status=202,
    )


@never_cache
@require_GET
@login_required
def upload_from_url_status(request: HttpRequest, session_key: str) -> JsonResponse:
    """
    Return the mailbox record for a queued upload.

    The record's `result` is one of "Queued", "Success", "Warning" or
    "Failure". An unknown key returns an empty object with a 404 status.

    Example:
        ```json
        {"result": "Success", "filename": "Example.jpg"}
        ```
    """
    record = read_session_data(request.session, session_key)
    return JsonResponse(record, status=200 if record else 404)


@require_POST
@login_required
def resume_stashed_upload(request: HttpRequest, stash_key: str) -> JsonResponse:
    """
    Store a file which was stashed because its upload raised warnings.

    Warnings are not checked again. The stash is discarded once the file has
    been stored; after a failure it is kept so the user can try again.

    Optional POST fields: `comment`, `page_text`, `watch`.
    """
    stash = get_object_or_404(StashedUpload, key=stash_key, user=request.user)

    parameters = JobParameters(
        filename=stash.filename,
        url=stash.source_url or "stash:" + stash.key,
        username=request.user.get_username(),
        comment=request.POST.get("comment", ""),
        page_text=request.POST.get("page_text", ""),
        watch=request.POST.get("watch") in ("1", "true", "on"),
        ignore_warnings=True,
        leave_message=True,
    )
    outcome = ImportPipeline(
        parameters, request.user, upload=UploadFromStash(stash)
    ).run()

    if outcome.is_ok:
        stash.discard()
        status = 200
    else:
        status = 400

    return JsonResponse(outcome.as_record(), status=status)


@require_POST
@login_required
def discard_stashed_upload(request: HttpRequest, stash_key: str) -> JsonResponse:
    stash = get_object_or_404(StashedUpload, key=stash_key, user=request.user)
    structured_logger.info(
        "Stashed upload discarded by user.",
        event_code="upload_stash_discarded",
        stash=stash,
    )
    stash.discard()
    return JsonResponse({"stash_key": stash_key, "discarded": True})
