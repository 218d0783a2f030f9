from dataclasses import replace
from decimal import Decimal

from django.db import models
from django.db.models import Q

from assignments.models import Assignment, AssignmentHistory as HistoryRecord, AssignmentStatus, AssignmentType, HistoryAction
from providers.models import Provider
from recipients.models import CareUser


class ServiceProvider(models.Model):
    """
    A credentialed care professional with bounded service capacity.
    current_users is owned by the assignment lifecycle; never edit it by hand.
    """
    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"
        SUSPENDED = "suspended", "Suspended"

    class Profession(models.TextChoices):
        DOCTOR = "doctor", "Doctor"
        NURSE = "nurse", "Nurse"
        THERAPIST = "therapist", "Therapist"
        CAREGIVER = "caregiver", "Caregiver"

    id = models.CharField(max_length=50, primary_key=True)
    name = models.CharField(max_length=100, blank=True, default="")
    profession = models.CharField(max_length=20, choices=Profession.choices, default=Profession.NURSE)

    # Service area: a center point plus radius in meters
    service_center_lat = models.FloatField(blank=True, null=True)
    service_center_lng = models.FloatField(blank=True, null=True)
    service_radius = models.PositiveIntegerField(default=5000)

    max_users = models.PositiveIntegerField(default=20)
    current_users = models.PositiveIntegerField(default=0)

    # ["blood_pressure", "diabetes_care", ...]
    specialties = models.JSONField(default=list, blank=True)
    # [{"day": "monday", "startTime": "08:00", "endTime": "17:00"}, ...]
    work_schedule = models.JSONField(default=list, blank=True)

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)
    rating = models.DecimalField(max_digits=3, decimal_places=2, default=Decimal("5.00"))

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "service_providers"
        ordering = ["id"]
        indexes = [
            models.Index(fields=["service_center_lat", "service_center_lng"], name="idx_provider_location"),
            models.Index(fields=["status"], name="idx_provider_status"),
        ]

    def __str__(self):
        return f"{self.name or self.id} ({self.current_users}/{self.max_users})"

    def to_domain(self) -> Provider:
        return Provider.new(
            provider_id=self.id,
            lat=self.service_center_lat,
            lng=self.service_center_lng,
            status=self.status,
            profession=self.profession,
            service_radius_m=self.service_radius,
            max_users=self.max_users,
            current_users=self.current_users,
            specialties=self.specialties or [],
            work_schedule=self.work_schedule or [],
            rating=float(self.rating),
        )


class CareRecipient(models.Model):
    """
    A care recipient awaiting or receiving service.
    """
    class AssignmentState(models.TextChoices):
        UNASSIGNED = "unassigned", "Unassigned"
        ASSIGNED = "assigned", "Assigned"
        IN_SERVICE = "in_service", "In Service"

    id = models.CharField(max_length=50, primary_key=True)
    name = models.CharField(max_length=100, blank=True, default="")
    latitude = models.FloatField(blank=True, null=True)
    longitude = models.FloatField(blank=True, null=True)

    # condition tags, e.g. ["diabetes", "high_blood_pressure"]
    health_conditions = models.JSONField(default=list, blank=True)

    assignment_status = models.CharField(
        max_length=20, choices=AssignmentState.choices, default=AssignmentState.UNASSIGNED
    )
    assigned_provider = models.ForeignKey(
        ServiceProvider, on_delete=models.SET_NULL, blank=True, null=True, related_name="assigned_users"
    )
    current_assignment_id = models.CharField(max_length=50, blank=True, null=True)

    class Meta:
        db_table = "care_users"
        ordering = ["id"]

    def __str__(self):
        return f"{self.name or self.id} ({self.get_assignment_status_display()})"

    def to_domain(self) -> CareUser:
        user = CareUser.new(
            user_id=self.id,
            lat=self.latitude,
            lng=self.longitude,
            health_conditions=self.health_conditions or [],
            assignment_status=self.assignment_status,
        )
        return replace(
            user,
            assigned_provider_id=self.assigned_provider_id,
            current_assignment_id=self.current_assignment_id,
        )


class UserAssignment(models.Model):
    """
    Binding of one user to one provider. Rows are never deleted; only the
    status moves active -> cancelled | completed.
    """
    class Type(models.TextChoices):
        MANUAL = "manual", "Manual"
        AUTOMATIC = "automatic", "Automatic"

    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        CANCELLED = "cancelled", "Cancelled"
        COMPLETED = "completed", "Completed"

    id = models.CharField(max_length=50, primary_key=True)
    user = models.ForeignKey(CareRecipient, on_delete=models.PROTECT, related_name="assignments")
    provider = models.ForeignKey(ServiceProvider, on_delete=models.PROTECT, related_name="assignments")

    assignment_type = models.CharField(max_length=20, choices=Type.choices, default=Type.MANUAL)
    assigned_by = models.CharField(max_length=50, blank=True, default="")
    assignment_reason = models.TextField(blank=True, default="")

    distance_meters = models.IntegerField(blank=True, null=True)
    match_score = models.DecimalField(max_digits=5, decimal_places=2, blank=True, null=True)

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)

    assigned_at = models.DateTimeField()
    cancelled_at = models.DateTimeField(blank=True, null=True)
    completed_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        db_table = "user_assignments"
        ordering = ["-assigned_at"]
        indexes = [
            models.Index(fields=["status"], name="idx_assignment_status"),
            models.Index(fields=["assigned_at"], name="idx_assignment_assigned_at"),
        ]
        constraints = [
            # at most one active assignment per user, enforced by the database as well
            models.UniqueConstraint(
                fields=["user"], condition=Q(status="active"), name="uniq_active_assignment_per_user"
            ),
        ]

    def __str__(self):
        return f"{self.id}: {self.user_id} -> {self.provider_id} ({self.status})"

    def to_domain(self) -> Assignment:
        return Assignment(
            id=self.id,
            user_id=self.user_id,
            provider_id=self.provider_id,
            assignment_type=AssignmentType(self.assignment_type),
            assigned_by=self.assigned_by,
            reason=self.assignment_reason,
            distance_m=float(self.distance_meters) if self.distance_meters is not None else None,
            match_score=float(self.match_score) if self.match_score is not None else None,
            status=AssignmentStatus(self.status),
            assigned_at=self.assigned_at,
            cancelled_at=self.cancelled_at,
            completed_at=self.completed_at,
        )


class AssignmentHistoryQuerySet(models.QuerySet):
    """
    Bulk update()/delete() would skip the model-level guards below.
    """

    def update(self, **kwargs):
        raise ValueError("Assignment history rows are append-only")

    def delete(self):
        raise ValueError("Assignment history rows are append-only")


class AssignmentHistory(models.Model):
    """
    Append-only audit trail of assignment transitions. Rows can be created
    but never saved again or deleted, one at a time or in bulk.
    """
    class Action(models.TextChoices):
        CREATED = "created", "Created"
        CANCELLED = "cancelled", "Cancelled"
        COMPLETED = "completed", "Completed"
        REASSIGNED = "reassigned", "Reassigned"

    id = models.CharField(max_length=50, primary_key=True)
    assignment = models.ForeignKey(UserAssignment, on_delete=models.PROTECT, related_name="history")
    action = models.CharField(max_length=20, choices=Action.choices)
    reason = models.TextField(blank=True, default="")
    operator = models.CharField(max_length=50, blank=True, default="")
    created_at = models.DateTimeField()

    objects = AssignmentHistoryQuerySet.as_manager()

    class Meta:
        db_table = "assignment_history"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["action"], name="idx_history_action"),
            models.Index(fields=["created_at"], name="idx_history_created_at"),
        ]

    def __str__(self):
        return f"{self.assignment_id} {self.action} by {self.operator}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Assignment history rows are append-only")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Assignment history rows are append-only")

    def to_domain(self) -> HistoryRecord:
        return HistoryRecord(
            id=self.id,
            assignment_id=self.assignment_id,
            action=HistoryAction(self.action),
            reason=self.reason,
            operator=self.operator,
            created_at=self.created_at,
        )
