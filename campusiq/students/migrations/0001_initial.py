# Generated manually for CampusIQ
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('tenants', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Student',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('class_name', models.CharField(max_length=50)),
                ('roll_number', models.CharField(max_length=30)),
                ('name', models.CharField(max_length=150)),
                ('parent_name', models.CharField(blank=True, default='', max_length=150)),
                ('parent_phone', models.CharField(blank=True, default='', max_length=20)),
                ('parent_email', models.EmailField(blank=True, default='', max_length=254)),
                ('email', models.EmailField(blank=True, default='', max_length=254)),
                ('address', models.TextField(blank=True, default='')),
                ('admission_date', models.DateField(blank=True, null=True)),
                ('status', models.CharField(choices=[('active', 'Active'), ('inactive', 'Inactive')], default='active', max_length=20)),
                ('parent_user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='children', to=settings.AUTH_USER_MODEL)),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='students_students', to='tenants.school')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='student_profiles', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['class_name', 'roll_number'],
                'indexes': [models.Index(fields=['school', 'class_name', 'status'], name='student_class_status_idx')],
                'constraints': [models.UniqueConstraint(fields=('school', 'class_name', 'roll_number'), name='student_unique_roll_per_class')],
            },
        ),
    ]
