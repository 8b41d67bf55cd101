from django.contrib import admin

from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('title', 'school', 'type', 'target_role', 'module', 'actor_name', 'created_at')
    list_filter = ('type', 'target_role', 'module', 'school')
    search_fields = ('title', 'message', 'actor_name')
    readonly_fields = ('created_at', 'updated_at')
    filter_horizontal = ('read_by',)
