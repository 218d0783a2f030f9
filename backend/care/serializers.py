from rest_framework import serializers

from dispatch.scoring import Algorithm

from .models import AssignmentHistory, CareRecipient, ServiceProvider, UserAssignment


class ServiceProviderSerializer(serializers.ModelSerializer):
    class Meta:
        model = ServiceProvider
        fields = '__all__'
        read_only_fields = ['current_users', 'created_at', 'updated_at']


class CareRecipientSerializer(serializers.ModelSerializer):
    provider_name = serializers.CharField(source="assigned_provider.name", read_only=True, default=None)

    class Meta:
        model = CareRecipient
        fields = '__all__'
        read_only_fields = ['assignment_status', 'assigned_provider', 'current_assignment_id']


class UserAssignmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = UserAssignment
        fields = '__all__'


class AssignmentHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = AssignmentHistory
        fields = '__all__'


# --- Request payloads (camelCase, as the admin portal sends them) ---

class ManualAssignSerializer(serializers.Serializer):
    userId = serializers.CharField()
    providerId = serializers.CharField()
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class BatchAssignSerializer(serializers.Serializer):
    userIds = serializers.ListField(child=serializers.CharField(), allow_empty=True)
    algorithm = serializers.ChoiceField(
        choices=[a.value for a in Algorithm], default=Algorithm.COMPREHENSIVE.value
    )
    # validated by BatchPreferences.from_payload so unknown keys are rejected there
    preferences = serializers.DictField(required=False, allow_null=True)


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="cancelled by administrator")


class CompleteSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="service completed")


class ReassignSerializer(serializers.Serializer):
    providerId = serializers.CharField()
    reason = serializers.CharField(required=False, allow_blank=True, default="")
