from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ('email', 'name', 'role', 'school', 'status', 'is_active', 'email_verified', 'last_login_at')
    list_filter = ('role', 'status', 'is_active', 'school')
    search_fields = ('email', 'name', 'phone')
    ordering = ('email',)
    readonly_fields = ('last_login', 'last_login_at', 'date_joined', 'failed_login_attempts')

    fieldsets = (
        (None, {'fields': ('email', 'password')}),
        ('Profile', {'fields': ('name', 'phone', 'role', 'school', 'status', 'allowed_modules')}),
        ('Teacher', {'fields': ('subject', 'classes', 'salary_per_day', 'joining_date')}),
        ('Security', {'fields': ('failed_login_attempts', 'locked_until', 'last_login_at', 'last_login')}),
        ('Permissions', {'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions')}),
        ('Dates', {'fields': ('date_joined',)}),
    )
    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'name', 'role', 'school', 'password1', 'password2'),
        }),
    )
