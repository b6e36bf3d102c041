from django.contrib import admin

from apps.web.notifications.models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ["type", "organization", "order", "read_at", "created_at"]
    list_filter = ["type", "organization"]
    readonly_fields = ["created_at", "updated_at"]
