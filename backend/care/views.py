import logging
from datetime import timedelta

from django.db.models import Avg, Case, Count, ExpressionWrapper, F, FloatField, Q, Sum, Value, When
from django.utils import timezone
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from assignments.errors import (
    AssignmentError,
    CapacityExceededError,
    DuplicateActiveAssignmentError,
    InvalidCoordinateError,
    InvalidPreferencesError,
    InvalidStateError,
    NoEligibleProviderError,
    NotFoundError,
    TransactionTimeoutError,
)
from dispatch.dispatcher import BatchAssigner
from dispatch.lifecycle import AssignmentLifecycle
from dispatch.policy import BatchPreferences, policy_from_env

from .models import CareRecipient, ServiceProvider, UserAssignment
from .serializers import (
    AssignmentHistorySerializer,
    BatchAssignSerializer,
    CancelSerializer,
    CareRecipientSerializer,
    CompleteSerializer,
    ManualAssignSerializer,
    ReassignSerializer,
    ServiceProviderSerializer,
    UserAssignmentSerializer,
)
from .store import DjangoAssignmentStore

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    CapacityExceededError: status.HTTP_409_CONFLICT,
    DuplicateActiveAssignmentError: status.HTTP_409_CONFLICT,
    InvalidStateError: status.HTTP_409_CONFLICT,
    NoEligibleProviderError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidCoordinateError: status.HTTP_400_BAD_REQUEST,
    InvalidPreferencesError: status.HTTP_400_BAD_REQUEST,
    TransactionTimeoutError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def error_response(exc: AssignmentError) -> Response:
    code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    logger.info("Assignment request rejected (%s): %s", exc.code, exc)
    return Response({"error": exc.code, "detail": str(exc)}, status=code)


class AssignmentViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Admin-only assignment management.
    - List/Retrieve assignments (filters: status, type, providerId, userId)
    - assign / batch / cancel / complete / reassign / history actions
    - statistics: dashboard counters
    Every mutation goes through the assignment lifecycle; views never touch
    provider capacity directly.
    """
    serializer_class = UserAssignmentSerializer
    permission_classes = [permissions.IsAdminUser]

    def get_queryset(self):
        qs = UserAssignment.objects.all()
        params = self.request.query_params
        if params.get("status"):
            qs = qs.filter(status=params["status"])
        if params.get("type"):
            qs = qs.filter(assignment_type=params["type"])
        if params.get("providerId"):
            qs = qs.filter(provider_id=params["providerId"])
        if params.get("userId"):
            qs = qs.filter(user_id=params["userId"])
        return qs

    # --- Engine wiring ---

    def _policy(self):
        return policy_from_env()

    def _lifecycle(self, policy=None) -> AssignmentLifecycle:
        policy = policy or self._policy()
        return AssignmentLifecycle(DjangoAssignmentStore(lock_timeout_seconds=policy.lock_timeout_seconds))

    def _actor(self) -> str:
        return self.request.user.get_username()

    def _assignment_response(self, assignment, status_code=status.HTTP_200_OK) -> Response:
        row = UserAssignment.objects.get(pk=assignment.id)
        return Response(UserAssignmentSerializer(row).data, status=status_code)

    # --- Actions ---

    @action(detail=False, methods=['post'])
    def assign(self, request):
        """
        Manually bind one user to a specific provider.
        """
        serializer = ManualAssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            assignment = self._lifecycle().manual_assign(
                data["userId"], data["providerId"], data.get("notes"), self._actor()
            )
        except AssignmentError as exc:
            return error_response(exc)
        return self._assignment_response(assignment, status.HTTP_201_CREATED)

    @action(detail=False, methods=['post'])
    def batch(self, request):
        """
        Auto-assign a list of users. Per-user failures land in `failed`;
        only malformed requests fail as a whole.
        """
        serializer = BatchAssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        policy = self._policy()
        store = DjangoAssignmentStore(lock_timeout_seconds=policy.lock_timeout_seconds)
        try:
            preferences = BatchPreferences.from_payload(data.get("preferences"), policy)
            result = BatchAssigner(store, policy=policy).batch_assign(
                data["userIds"], data["algorithm"], preferences, actor=self._actor()
            )
        except AssignmentError as exc:
            return error_response(exc)
        return Response(result.to_dict())

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        serializer = CancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            assignment = self._lifecycle().cancel_assignment(pk, serializer.validated_data["reason"], self._actor())
        except AssignmentError as exc:
            return error_response(exc)
        return self._assignment_response(assignment)

    @action(detail=True, methods=['post'])
    def complete(self, request, pk=None):
        serializer = CompleteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            assignment = self._lifecycle().complete_assignment(
                pk, self._actor(), serializer.validated_data["reason"]
            )
        except AssignmentError as exc:
            return error_response(exc)
        return self._assignment_response(assignment)

    @action(detail=True, methods=['post'])
    def reassign(self, request, pk=None):
        """
        Move the user of this assignment to another provider.
        Cancel and create commit together or not at all.
        """
        serializer = ReassignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        lifecycle = self._lifecycle()
        try:
            current = lifecycle.get_assignment(pk)
            if current.status.is_terminal:
                raise InvalidStateError(f"Assignment {pk} is {current.status.value}, not active")
            assignment = lifecycle.reassign(
                current.user_id, data["providerId"], self._actor(), reason=data["reason"]
            )
        except AssignmentError as exc:
            return error_response(exc)
        return self._assignment_response(assignment)

    @action(detail=True, methods=['get'])
    def history(self, request, pk=None):
        row = UserAssignment.objects.filter(pk=pk).first()
        if row is None:
            return error_response(NotFoundError("Assignment", pk))
        return Response(AssignmentHistorySerializer(row.history.all(), many=True).data)

    @action(detail=False, methods=['get'])
    def statistics(self, request):
        """
        Dashboard counters: user pool, provider load, and assignments made
        in the last `days` days (default 30).
        """
        try:
            days = int(request.query_params.get("days", 30))
        except ValueError:
            days = 0
        if days <= 0:
            return error_response(InvalidPreferencesError("days must be a positive integer"))
        since = timezone.now() - timedelta(days=days)

        users = CareRecipient.objects.aggregate(
            total=Count("id"),
            assigned=Count("id", filter=Q(assignment_status=CareRecipient.AssignmentState.ASSIGNED)),
            unassigned=Count("id", filter=Q(assignment_status=CareRecipient.AssignmentState.UNASSIGNED)),
        )
        providers = ServiceProvider.objects.aggregate(
            total=Count("id"),
            active=Count("id", filter=Q(status=ServiceProvider.Status.ACTIVE)),
            assigned_users=Sum("current_users"),
            load_rate=Avg(
                Case(
                    When(
                        max_users__gt=0,
                        then=ExpressionWrapper(F("current_users") * 100.0 / F("max_users"), output_field=FloatField()),
                    ),
                    default=Value(0.0),
                    output_field=FloatField(),
                )
            ),
        )
        assignments = UserAssignment.objects.filter(assigned_at__gte=since).aggregate(
            total=Count("id"),
            active=Count("id", filter=Q(status=UserAssignment.Status.ACTIVE)),
            automatic=Count("id", filter=Q(assignment_type=UserAssignment.Type.AUTOMATIC)),
            manual=Count("id", filter=Q(assignment_type=UserAssignment.Type.MANUAL)),
        )

        return Response({
            "users": {
                "totalUsers": users["total"],
                "assignedUsers": users["assigned"],
                "unassignedUsers": users["unassigned"],
            },
            "providers": {
                "totalProviders": providers["total"],
                "activeProviders": providers["active"],
                "totalAssignedUsers": providers["assigned_users"] or 0,
                "avgLoadRate": round(providers["load_rate"] or 0.0, 1),
            },
            "assignments": {
                "periodDays": days,
                "totalAssignments": assignments["total"],
                "activeAssignments": assignments["active"],
                "autoAssignments": assignments["automatic"],
                "manualAssignments": assignments["manual"],
            },
        })


class CareUserViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Admin view of the user pool.
    - List (filters: assignmentStatus, keyword) with pool-wide counters
    - Retrieve
    """
    queryset = CareRecipient.objects.select_related("assigned_provider")
    serializer_class = CareRecipientSerializer
    permission_classes = [permissions.IsAdminUser]

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params
        if params.get("assignmentStatus"):
            qs = qs.filter(assignment_status=params["assignmentStatus"])
        if params.get("keyword"):
            qs = qs.filter(Q(id__icontains=params["keyword"]) | Q(name__icontains=params["keyword"]))
        return qs

    def list(self, request, *args, **kwargs):
        users = self.filter_queryset(self.get_queryset())
        # counters cover the whole pool, not just the filtered page
        counts = CareRecipient.objects.aggregate(
            total=Count("id"),
            assigned=Count("id", filter=Q(assignment_status=CareRecipient.AssignmentState.ASSIGNED)),
            unassigned=Count("id", filter=Q(assignment_status=CareRecipient.AssignmentState.UNASSIGNED)),
            in_service=Count("id", filter=Q(assignment_status=CareRecipient.AssignmentState.IN_SERVICE)),
        )
        return Response({
            "users": self.get_serializer(users, many=True).data,
            "statistics": {
                "totalUsers": counts["total"],
                "assignedUsers": counts["assigned"],
                "unassignedUsers": counts["unassigned"],
                "inServiceUsers": counts["in_service"],
            },
        })


class ProviderViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = ServiceProvider.objects.all()
    serializer_class = ServiceProviderSerializer
    permission_classes = [permissions.IsAdminUser]
