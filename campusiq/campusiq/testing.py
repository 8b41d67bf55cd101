"""Фабрики для тестов приложений CampusIQ."""
from django.contrib.auth import get_user_model

from tenants.models import School

User = get_user_model()


def create_school(slug='greenwood', name=None, plan=School.Plan.STARTER, **extra):
    return School.objects.create(slug=slug, name=name or slug.title(), plan=plan, **extra)


def create_user(school, role='admin', email=None, name=None, password='testpass123', **extra):
    email = email or f'{role}@{school.slug if school else "platform"}.test'
    return User.objects.create_user(
        email=email,
        password=password,
        name=name or f'{role.title()} {school.name if school else ""}'.strip(),
        role=role,
        school=school,
        **extra,
    )


def create_student(school, name='Aarav Sharma', class_name='5A', roll_number='1', **extra):
    from students.models import Student

    return Student.objects.create(
        school=school, name=name, class_name=class_name, roll_number=roll_number, **extra,
    )
