# Generated manually for CampusIQ
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('tenants', '0001_initial'),
        ('students', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Visitor',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('visitor_name', models.CharField(max_length=150)),
                ('visitor_phone', models.CharField(blank=True, default='', max_length=20)),
                ('visitor_email', models.EmailField(blank=True, default='', max_length=254)),
                ('purpose', models.CharField(max_length=300)),
                ('host_name', models.CharField(blank=True, default='', max_length=150)),
                ('host_type', models.CharField(choices=[('staff', 'Staff'), ('teacher', 'Teacher'), ('student', 'Student'), ('admin', 'Administration'), ('other', 'Other')], default='staff', max_length=20)),
                ('id_proof', models.CharField(blank=True, default='', max_length=100)),
                ('check_in', models.DateTimeField(blank=True, null=True)),
                ('check_out', models.DateTimeField(blank=True, null=True)),
                ('badge_number', models.CharField(blank=True, default='', max_length=10)),
                ('status', models.CharField(choices=[('pre_registered', 'Pre-registered'), ('checked_in', 'Checked in'), ('checked_out', 'Checked out'), ('cancelled', 'Cancelled')], default='checked_in', max_length=20)),
                ('notes', models.TextField(blank=True, default='')),
                ('registered_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='registered_visitors', to=settings.AUTH_USER_MODEL)),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='visitors_visitors', to='tenants.school')),
                ('student', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='visitors', to='students.student')),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['school', 'status'], name='visitor_status_idx')],
            },
        ),
    ]
