from rest_framework import serializers

from .models import AuditLog, TeamMember, User


class UserSerializer(serializers.ModelSerializer):
    store_name = serializers.CharField(source='store.name', read_only=True, default=None)

    class Meta:
        model = User
        fields = [
            'id', 'name', 'email', 'role', 'store', 'store_name', 'floor',
            'metadata', 'is_active', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class PrincipalSerializer(serializers.Serializer):
    """Read-only view of an ``accounts.identity.Principal``."""
    id = serializers.CharField()
    email = serializers.EmailField()
    name = serializers.CharField(allow_blank=True)
    role = serializers.CharField(allow_null=True)
    store_id = serializers.IntegerField(allow_null=True)
    floor = serializers.IntegerField(allow_null=True)
    metadata = serializers.DictField()


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(trim_whitespace=False)


class SignUpSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(min_length=8, trim_whitespace=False)
    name = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')

    # Role, store and floor are assigned through the team roster only.

    def validate_email(self, value):
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('A user with this email already exists.')
        return value

    def to_metadata(self):
        return {'name': self.validated_data.get('name', '')}


class TeamMemberSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)

    class Meta:
        model = TeamMember
        fields = [
            'id', 'user', 'email', 'first_name', 'last_name', 'full_name',
            'role', 'store', 'floor', 'status', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'user', 'created_at', 'updated_at']


class AuditLogSerializer(serializers.ModelSerializer):
    user_name = serializers.CharField(source='user.name', read_only=True, default=None)

    class Meta:
        model = AuditLog
        fields = [
            'id', 'table_name', 'record_id', 'action', 'old_values', 'new_values',
            'user', 'user_name', 'user_email', 'ip_address', 'user_agent',
            'additional_context', 'created_at'
        ]
        read_only_fields = fields


class AuditSummarySerializer(serializers.Serializer):
    total_actions = serializers.IntegerField()
    actions_by_type = serializers.DictField(child=serializers.IntegerField())
    actions_by_user = serializers.DictField(child=serializers.IntegerField())
    actions_by_table = serializers.DictField(child=serializers.IntegerField())
    recent_activity = AuditLogSerializer(many=True)
