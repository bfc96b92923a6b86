# school/admin.py

from django.contrib import admin

from school.models import Student, Subject


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ("roll_number", "first_name", "last_name", "is_active", "created_at")
    search_fields = ("roll_number", "first_name", "last_name", "guardian_name")
    list_filter = ("is_active",)


@admin.register(Subject)
class SubjectAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "teacher", "monthly_fee", "is_active")
    search_fields = ("code", "name")
    list_filter = ("is_active",)
