from django.contrib import admin

from .models import Attendance, Holiday


@admin.register(Attendance)
class AttendanceAdmin(admin.ModelAdmin):
    list_display = ('student', 'class_name', 'date', 'status', 'school', 'marked_by', 'marked_at')
    list_filter = ('status', 'school', 'class_name', 'date')
    search_fields = ('student__name', 'student__roll_number', 'class_name')
    raw_id_fields = ('student', 'marked_by')
    date_hierarchy = 'date'


@admin.register(Holiday)
class HolidayAdmin(admin.ModelAdmin):
    list_display = ('name', 'date', 'type', 'school')
    list_filter = ('type', 'school')
    search_fields = ('name',)
