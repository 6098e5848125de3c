import logging

from celery import current_task


class CeleryTaskIDFilter(logging.Filter):
    """
    Add ``task_id`` to every record so formatters can reference it whether or
    not the record was emitted inside a Celery task.
    """

    def filter(self, record):
        task = current_task
        if task and task.request.id:
            record.task_id = f" [{task.name}/{task.request.id}]"
        else:
            record.task_id = ""
        return True
