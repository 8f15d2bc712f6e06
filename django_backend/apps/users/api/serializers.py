from rest_framework import serializers

from apps.users.models import Team, TeamMembership, User, UserRole


class UserSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "name", "email", "role"]


class TeamSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Team
        fields = ["id", "name", "description"]


class UserSerializer(serializers.ModelSerializer):
    teams = TeamSummarySerializer(many=True, read_only=True)
    created_by = UserSummarySerializer(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "name",
            "email",
            "role",
            "is_active",
            "phone",
            "department",
            "position",
            "avatar",
            "teams",
            "created_by",
            "last_login",
            "date_joined",
            "updated_at",
        ]
        read_only_fields = fields


class ProfileFieldsMixin(serializers.Serializer):
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True)
    department = serializers.CharField(max_length=100, required=False, allow_blank=True)
    position = serializers.CharField(max_length=100, required=False, allow_blank=True)
    avatar = serializers.URLField(required=False, allow_blank=True)


class RegisterSerializer(ProfileFieldsMixin):
    name = serializers.CharField(max_length=100)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=6)
    # Admins are only made by the first registration or by another admin.
    role = serializers.ChoiceField(
        choices=[UserRole.MEMBER, UserRole.TEAM_LEADER], required=False
    )

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Name is required.")
        return value


class UserUpdateSerializer(ProfileFieldsMixin):
    name = serializers.CharField(max_length=100, required=False)
    email = serializers.EmailField(required=False)
    role = serializers.ChoiceField(choices=UserRole.choices, required=False)
    is_active = serializers.BooleanField(required=False)


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)


class ChangePasswordSerializer(serializers.Serializer):
    current_password = serializers.CharField(write_only=True)
    new_password = serializers.CharField(write_only=True, min_length=6)


class RefreshSerializer(serializers.Serializer):
    refresh = serializers.CharField()


class TeamMemberSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = TeamMembership
        fields = ["user", "role", "joined_at"]


class TeamSerializer(serializers.ModelSerializer):
    leader = UserSummarySerializer(read_only=True)
    members = TeamMemberSerializer(source="memberships", many=True, read_only=True)
    member_count = serializers.SerializerMethodField()
    created_by = UserSummarySerializer(read_only=True)

    class Meta:
        model = Team
        fields = [
            "id",
            "name",
            "description",
            "leader",
            "members",
            "member_count",
            "is_active",
            "allow_member_invite",
            "public_visibility",
            "created_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_member_count(self, obj):
        # Counted from the prefetched rows
        return len(obj.memberships.all())


class TeamCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    description = serializers.CharField(max_length=500, required=False, allow_blank=True)
    leader_id = serializers.IntegerField()
    member_ids = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)
    is_active = serializers.BooleanField(required=False, default=True)
    allow_member_invite = serializers.BooleanField(required=False, default=False)
    public_visibility = serializers.BooleanField(required=False, default=False)

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Team name is required.")
        return value

    def validate_member_ids(self, value):
        if len(value) != len(set(value)):
            raise serializers.ValidationError("Duplicate user IDs are not allowed.")
        return value


class TeamUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100, required=False)
    description = serializers.CharField(max_length=500, required=False, allow_blank=True)
    leader_id = serializers.IntegerField(required=False)
    is_active = serializers.BooleanField(required=False)
    allow_member_invite = serializers.BooleanField(required=False)
    public_visibility = serializers.BooleanField(required=False)

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Team name cannot be blank.")
        return value


class MemberActionSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()


class LeaderSerializer(serializers.Serializer):
    leader_id = serializers.IntegerField()
