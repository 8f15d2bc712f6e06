import logging

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone

from apps.tasks.models import CLOSED_TASK_STATUSES, Task

logger = logging.getLogger(__name__)


def _emails(users):
    return sorted({u.email for u in users if u is not None and u.is_active and u.email})


def _notify(users, subject, body):
    recipients = _emails(users)
    if not recipients:
        return 0
    send_mail(subject, body, settings.DEFAULT_FROM_EMAIL, recipients, fail_silently=True)
    return len(recipients)


def _task_recipients(task):
    if task.assigned_to is not None:
        return [task.assigned_to]
    return [task.created_by] if task.created_by else []


@shared_task
def send_task_notification(task_id, notification_type):
    """
    Send email notifications for task events.
    notification_type: assigned | status_changed | comment_added | overdue | updated
    """
    try:
        task = Task.objects.select_related("assigned_to", "created_by", "project").get(pk=task_id)
    except Task.DoesNotExist:
        return 0

    users = _task_recipients(task)
    if not users:
        return 0

    nt = notification_type
    if nt == "assigned":
        subject = f"[Assignment] {task.title}"
        body = f"You have been assigned to the task '{task.title}' in project '{task.project.name}'."
    elif nt == "status_changed":
        subject = f"[Status Changed] {task.title}"
        body = f"The status of '{task.title}' is now: {task.get_status_display()}."
    elif nt == "comment_added":
        subject = f"[New Comment] {task.title}"
        body = f"A comment was added to the task '{task.title}'."
    elif nt == "overdue":
        subject = f"[Overdue] {task.title}"
        body = f"The task '{task.title}' is overdue (due date: {task.due_date:%Y-%m-%d %H:%M})."
    else:
        subject = f"[Update] {task.title}"
        body = f"The task '{task.title}' has been updated."

    sent = _notify(users, subject, body)
    logger.debug(f"Sent {nt} notification for task {task_id} to {sent} recipients")
    return sent


@shared_task
def check_overdue_tasks():
    """
    Notify assignees of open overdue tasks not reported yet. A task is
    reported once per due date; moving the due date re-arms it. Returns the
    number of tasks reported.
    """
    now = timezone.now()
    task_ids = list(
        Task.objects
        .filter(due_date__lt=now, overdue_notified_at__isnull=True)
        .exclude(status__in=CLOSED_TASK_STATUSES)
        .values_list("id", flat=True)
    )
    if not task_ids:
        return 0

    Task.objects.filter(pk__in=task_ids).update(overdue_notified_at=now)
    for task_id in task_ids:
        send_task_notification.delay(task_id, "overdue")
    logger.info(f"Reported {len(task_ids)} overdue tasks")
    return len(task_ids)
