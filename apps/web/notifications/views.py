"""
Owner notification feed.
"""

from django.http import HttpRequest, JsonResponse
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from apps.web.core.decorators import owner_required
from apps.web.core.http import json_response
from apps.web.notifications.models import Notification

FEED_LIMIT = 100


def _serialize(notification: Notification) -> dict:
    return {
        "id": notification.pk,
        "type": notification.type,
        "order_id": notification.order_id,
        "payload": notification.payload,
        "read_at": notification.read_at.isoformat() if notification.read_at else None,
        "created_at": notification.created_at.isoformat(),
    }


@require_GET
@owner_required
def notification_list(request: HttpRequest) -> JsonResponse:
    """
    GET /api/owner/notifications?unread=1
    """
    notifications = Notification.objects.for_organization(request)
    if request.GET.get("unread") in ("1", "true"):
        notifications = notifications.filter(read_at__isnull=True)

    unread_count = (
        Notification.objects.for_organization(request).filter(read_at__isnull=True).count()
    )

    return json_response(
        {
            "notifications": [_serialize(n) for n in notifications[:FEED_LIMIT]],
            "unread_count": unread_count,
        }
    )


@csrf_exempt
@require_POST
@owner_required
def mark_read(request: HttpRequest, notification_id: int) -> JsonResponse:
    """
    POST /api/owner/notifications/{id}/read

    Marking an already-read notification keeps its original read_at.
    """
    notification = (
        Notification.objects.for_organization(request).filter(pk=notification_id).first()
    )
    if notification is None:
        return json_response({"error": "Notification not found"}, status=404)

    if notification.read_at is None:
        notification.read_at = timezone.now()
        notification.save(update_fields=["read_at", "updated_at"])

    return json_response({"notification": _serialize(notification)})
