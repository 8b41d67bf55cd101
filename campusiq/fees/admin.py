from django.contrib import admin

from .models import FeePayment, FeeStructure


@admin.register(FeeStructure)
class FeeStructureAdmin(admin.ModelAdmin):
    list_display = ('name', 'class_name', 'academic_year', 'amount', 'due_date', 'category', 'status', 'school')
    list_filter = ('status', 'category', 'school', 'academic_year')
    search_fields = ('name', 'class_name')
    readonly_fields = ('created_at', 'updated_at')


@admin.register(FeePayment)
class FeePaymentAdmin(admin.ModelAdmin):
    list_display = (
        'receipt_number', 'student_name', 'class_name', 'fee_name',
        'total_paid', 'balance_due', 'status', 'payment_date', 'school',
    )
    list_filter = ('status', 'payment_method', 'school')
    search_fields = ('receipt_number', 'student_name', 'fee_name', 'transaction_id')
    raw_id_fields = ('student', 'fee_structure', 'collected_by')
    readonly_fields = ('receipt_number', 'created_at', 'updated_at')
    date_hierarchy = 'payment_date'
