from django.contrib import admin

from .models import Visitor


@admin.register(Visitor)
class VisitorAdmin(admin.ModelAdmin):
    list_display = ('visitor_name', 'purpose', 'host_name', 'badge_number', 'status', 'check_in', 'check_out', 'school')
    list_filter = ('status', 'host_type', 'school')
    search_fields = ('visitor_name', 'visitor_phone', 'host_name', 'badge_number')
    raw_id_fields = ('student', 'registered_by')
