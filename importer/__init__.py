"""
Design
======

The importer copies a single file from a remote URL into the content store on
behalf of a logged-in user. Fetching can take minutes, so the work happens in a
Celery task and the result is handed back to the user afterwards.

General goals:

* A run never retries and never raises to the queue. Every run ends in exactly
  one outcome (Success, Warning or Failure) which is reported exactly once.
* Warnings need the user's confirmation, so a run with warnings keeps the
  fetched file (a "stash") instead of storing or discarding it.

The process works like this:

1. The user submits a URL and a destination filename. ``enqueue_upload_from_url``
   builds ``JobParameters``, marks the job as "Queued" in the user's session
   mailbox (unless the result is to be e-mailed), saves the session and only
   then queues ``upload_from_url_task``.
2. The task rebuilds the parameters, then ``ImportPipeline`` fetches the file,
   verifies it, checks for warnings and, if there are none or they are being
   ignored, stores it as an ``UploadedFile``. With warnings the file is saved
   as a ``StashedUpload`` and the run stops.
3. The outcome goes to the channel chosen when the job was created: an e-mail
   (``DirectMessageChannel``) or the session mailbox (``MailboxChannel``) which
   the user's browser polls.
4. A stashed upload can later be resumed or discarded by its owner using the
   stash key.

There is no lock on the destination name. Two jobs uploading to the same name
may finish in either order and the last one to commit wins. Writes to the
session mailbox are serialized per session by locking the session's database
row, so jobs from one user finishing together each keep their record.
"""
