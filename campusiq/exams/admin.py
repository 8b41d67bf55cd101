from django.contrib import admin

from .models import Exam, Grade


class GradeInline(admin.TabularInline):
    model = Grade
    extra = 0
    fields = ('student', 'marks_obtained', 'total_marks', 'percentage', 'grade', 'rank')
    readonly_fields = ('percentage', 'grade', 'rank')
    raw_id_fields = ('student',)


@admin.register(Exam)
class ExamAdmin(admin.ModelAdmin):
    list_display = ('name', 'subject', 'class_name', 'date', 'type', 'status', 'school')
    list_filter = ('status', 'type', 'school')
    search_fields = ('name', 'subject', 'class_name')
    raw_id_fields = ('invigilator',)
    inlines = [GradeInline]


@admin.register(Grade)
class GradeAdmin(admin.ModelAdmin):
    list_display = ('student_name', 'exam', 'marks_obtained', 'total_marks', 'percentage', 'grade', 'rank')
    list_filter = ('grade', 'school')
    search_fields = ('student_name', 'subject')
    raw_id_fields = ('exam', 'student', 'entered_by')
