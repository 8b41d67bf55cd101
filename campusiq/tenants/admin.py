from django.contrib import admin

from .models import School, SchoolResourceLimits


class SchoolResourceLimitsInline(admin.StackedInline):
    model = SchoolResourceLimits
    extra = 0


@admin.register(School)
class SchoolAdmin(admin.ModelAdmin):
    list_display = ('name', 'slug', 'plan', 'subscription_status', 'status', 'created_at')
    list_filter = ('status', 'plan', 'subscription_status', 'school_type')
    search_fields = ('name', 'slug', 'email')
    readonly_fields = ('id', 'created_at', 'updated_at')
    prepopulated_fields = {'slug': ('name',)}
    inlines = [SchoolResourceLimitsInline]

    fieldsets = (
        ('Main', {
            'fields': ('id', 'name', 'slug', 'school_type', 'board', 'status')
        }),
        ('Contacts', {
            'fields': ('address', 'phone', 'email', 'logo_url')
        }),
        ('Subscription', {
            'fields': ('plan', 'subscription_status', 'trial_ends_at')
        }),
        ('Metadata (JSON)', {
            'classes': ('collapse',),
            'fields': ('timezone', 'metadata')
        }),
        ('Dates', {
            'fields': ('created_at', 'updated_at')
        }),
    )
