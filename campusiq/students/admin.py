from django.contrib import admin

from .models import Student


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ('name', 'class_name', 'roll_number', 'school', 'parent_name', 'parent_phone', 'status')
    list_filter = ('status', 'school', 'class_name')
    search_fields = ('name', 'roll_number', 'parent_name', 'parent_phone', 'email')
    raw_id_fields = ('user', 'parent_user')
    readonly_fields = ('created_at', 'updated_at')
