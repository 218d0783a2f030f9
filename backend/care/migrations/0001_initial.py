# Initial schema for the care app: providers, users, assignments, history

from decimal import Decimal

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        # ServiceProvider
        migrations.CreateModel(
            name='ServiceProvider',
            fields=[
                ('id', models.CharField(max_length=50, primary_key=True, serialize=False)),
                ('name', models.CharField(blank=True, default='', max_length=100)),
                ('profession', models.CharField(choices=[('doctor', 'Doctor'), ('nurse', 'Nurse'), ('therapist', 'Therapist'), ('caregiver', 'Caregiver')], default='nurse', max_length=20)),
                ('service_center_lat', models.FloatField(blank=True, null=True)),
                ('service_center_lng', models.FloatField(blank=True, null=True)),
                ('service_radius', models.PositiveIntegerField(default=5000)),
                ('max_users', models.PositiveIntegerField(default=20)),
                ('current_users', models.PositiveIntegerField(default=0)),
                ('specialties', models.JSONField(blank=True, default=list)),
                ('work_schedule', models.JSONField(blank=True, default=list)),
                ('status', models.CharField(choices=[('active', 'Active'), ('inactive', 'Inactive'), ('suspended', 'Suspended')], default='active', max_length=20)),
                ('rating', models.DecimalField(decimal_places=2, default=Decimal('5.00'), max_digits=3)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'service_providers',
                'ordering': ['id'],
            },
        ),

        # CareRecipient
        migrations.CreateModel(
            name='CareRecipient',
            fields=[
                ('id', models.CharField(max_length=50, primary_key=True, serialize=False)),
                ('name', models.CharField(blank=True, default='', max_length=100)),
                ('latitude', models.FloatField(blank=True, null=True)),
                ('longitude', models.FloatField(blank=True, null=True)),
                ('health_conditions', models.JSONField(blank=True, default=list)),
                ('assignment_status', models.CharField(choices=[('unassigned', 'Unassigned'), ('assigned', 'Assigned'), ('in_service', 'In Service')], default='unassigned', max_length=20)),
                ('current_assignment_id', models.CharField(blank=True, max_length=50, null=True)),
                ('assigned_provider', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='assigned_users', to='care.serviceprovider')),
            ],
            options={
                'db_table': 'care_users',
                'ordering': ['id'],
            },
        ),

        # UserAssignment
        migrations.CreateModel(
            name='UserAssignment',
            fields=[
                ('id', models.CharField(max_length=50, primary_key=True, serialize=False)),
                ('assignment_type', models.CharField(choices=[('manual', 'Manual'), ('automatic', 'Automatic')], default='manual', max_length=20)),
                ('assigned_by', models.CharField(blank=True, default='', max_length=50)),
                ('assignment_reason', models.TextField(blank=True, default='')),
                ('distance_meters', models.IntegerField(blank=True, null=True)),
                ('match_score', models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ('status', models.CharField(choices=[('active', 'Active'), ('cancelled', 'Cancelled'), ('completed', 'Completed')], default='active', max_length=20)),
                ('assigned_at', models.DateTimeField()),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('provider', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='assignments', to='care.serviceprovider')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='assignments', to='care.carerecipient')),
            ],
            options={
                'db_table': 'user_assignments',
                'ordering': ['-assigned_at'],
            },
        ),

        # AssignmentHistory
        migrations.CreateModel(
            name='AssignmentHistory',
            fields=[
                ('id', models.CharField(max_length=50, primary_key=True, serialize=False)),
                ('action', models.CharField(choices=[('created', 'Created'), ('cancelled', 'Cancelled'), ('completed', 'Completed'), ('reassigned', 'Reassigned')], max_length=20)),
                ('reason', models.TextField(blank=True, default='')),
                ('operator', models.CharField(blank=True, default='', max_length=50)),
                ('created_at', models.DateTimeField()),
                ('assignment', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='history', to='care.userassignment')),
            ],
            options={
                'db_table': 'assignment_history',
                'ordering': ['created_at', 'id'],
            },
        ),

        # Indexes
        migrations.AddIndex(
            model_name='serviceprovider',
            index=models.Index(fields=['service_center_lat', 'service_center_lng'], name='idx_provider_location'),
        ),
        migrations.AddIndex(
            model_name='serviceprovider',
            index=models.Index(fields=['status'], name='idx_provider_status'),
        ),
        migrations.AddIndex(
            model_name='userassignment',
            index=models.Index(fields=['status'], name='idx_assignment_status'),
        ),
        migrations.AddIndex(
            model_name='userassignment',
            index=models.Index(fields=['assigned_at'], name='idx_assignment_assigned_at'),
        ),
        migrations.AddIndex(
            model_name='assignmenthistory',
            index=models.Index(fields=['action'], name='idx_history_action'),
        ),
        migrations.AddIndex(
            model_name='assignmenthistory',
            index=models.Index(fields=['created_at'], name='idx_history_created_at'),
        ),

        # One active assignment per user
        migrations.AddConstraint(
            model_name='userassignment',
            constraint=models.UniqueConstraint(condition=models.Q(('status', 'active')), fields=('user',), name='uniq_active_assignment_per_user'),
        ),
    ]
