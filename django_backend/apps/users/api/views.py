from django.conf import settings
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.common.authorization import scope_teams, scope_users
from apps.users import services
from apps.users.models import User
from .filters import TeamFilter, UserFilter
from .permissions import IsAdmin
from .serializers import (
    ChangePasswordSerializer,
    LeaderSerializer,
    LoginSerializer,
    MemberActionSerializer,
    RefreshSerializer,
    RegisterSerializer,
    TeamCreateSerializer,
    TeamSerializer,
    TeamUpdateSerializer,
    UserSerializer,
    UserUpdateSerializer,
)


def _session_response(user, session, status_code=status.HTTP_200_OK, message=None):
    """Body with the user and token pair; the access token also goes in a cookie."""
    body = {"user": UserSerializer(user).data, "tokens": session.to_dict()}
    if message:
        body["message"] = message
    response = Response(body, status=status_code)
    response.set_cookie(
        getattr(settings, "AUTH_COOKIE_ACCESS", "access_token"),
        session.access,
        max_age=int(settings.SIMPLE_JWT["ACCESS_TOKEN_LIFETIME"].total_seconds()),
        httponly=getattr(settings, "AUTH_COOKIE_HTTPONLY", True),
        secure=getattr(settings, "AUTH_COOKIE_SECURE", False),
        samesite=getattr(settings, "AUTH_COOKIE_SAMESITE", "Lax"),
    )
    return response


class RegisterAPIView(APIView):
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user, session = services.register(**serializer.validated_data)
        return _session_response(
            user, session, status.HTTP_201_CREATED, "User registered successfully"
        )


class LoginAPIView(APIView):
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user, session = services.authenticate(**serializer.validated_data)
        return _session_response(user, session, message="Login successful")


class RefreshAPIView(APIView):
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    def post(self, request):
        serializer = RefreshSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        session = services.refresh_session(serializer.validated_data["refresh"])
        return Response({"tokens": session.to_dict()})


class LogoutAPIView(APIView):
    def post(self, request):
        serializer = RefreshSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        services.logout(request.user, serializer.validated_data["refresh"])

        response = Response({"message": "Logged out successfully"})
        response.delete_cookie(getattr(settings, "AUTH_COOKIE_ACCESS", "access_token"))
        return response


class MeAPIView(APIView):
    def get(self, request):
        user = User.objects.prefetch_related("teams").get(pk=request.user.pk)
        return Response(UserSerializer(user).data)


class ChangePasswordAPIView(APIView):
    def put(self, request):
        serializer = ChangePasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        services.change_password(
            request.user,
            serializer.validated_data["current_password"],
            serializer.validated_data["new_password"],
        )
        return Response({"message": "Password changed successfully"})


class UserViewSet(viewsets.GenericViewSet):
    serializer_class = UserSerializer
    filterset_class = UserFilter
    search_fields = ["name", "email", "department"]
    ordering_fields = ["name", "email", "role", "date_joined", "last_login"]
    ordering = ["-date_joined"]

    def get_queryset(self):
        queryset = User.objects.select_related("created_by").prefetch_related("teams")
        return scope_users(self.request.user, queryset)

    def get_permissions(self):
        if self.action in ["list", "create", "destroy", "promote", "demote", "stats"]:
            return [permissions.IsAuthenticated(), IsAdmin()]
        return super().get_permissions()

    def _render(self, user, status_code=status.HTTP_200_OK):
        user = User.objects.select_related("created_by").prefetch_related("teams").get(pk=user.pk)
        return Response(UserSerializer(user).data, status=status_code)

    def list(self, request):
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        serializer = self.get_serializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    def retrieve(self, request, pk=None):
        return Response(UserSerializer(services.get_user(request.user, pk)).data)

    def create(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = services.create_user(request.user, **serializer.validated_data)
        return self._render(user, status.HTTP_201_CREATED)

    def update(self, request, pk=None):
        serializer = UserUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = services.update_user(request.user, pk, serializer.validated_data)
        return self._render(user)

    def partial_update(self, request, pk=None):
        return self.update(request, pk)

    def destroy(self, request, pk=None):
        services.delete_user(request.user, pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["put", "post"])
    def promote(self, request, pk=None):
        return self._render(services.promote(request.user, pk))

    @action(detail=True, methods=["put", "post"])
    def demote(self, request, pk=None):
        return self._render(services.demote(request.user, pk))

    @action(detail=False, methods=["get"])
    def stats(self, request):
        return Response(services.user_stats(request.user))


class TeamViewSet(viewsets.GenericViewSet):
    serializer_class = TeamSerializer
    filterset_class = TeamFilter
    search_fields = ["name", "description"]
    ordering_fields = ["name", "created_at", "updated_at"]
    ordering = ["-created_at"]

    def get_queryset(self):
        return scope_teams(self.request.user, services.team_queryset())

    def list(self, request):
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        serializer = self.get_serializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    def retrieve(self, request, pk=None):
        return Response(TeamSerializer(services.get_team(request.user, pk)).data)

    def create(self, request):
        serializer = TeamCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        team = services.create_team(request.user, **serializer.validated_data)
        return Response(TeamSerializer(team).data, status=status.HTTP_201_CREATED)

    def update(self, request, pk=None):
        serializer = TeamUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        team = services.update_team(request.user, pk, serializer.validated_data)
        return Response(TeamSerializer(team).data)

    def partial_update(self, request, pk=None):
        return self.update(request, pk)

    def destroy(self, request, pk=None):
        services.delete_team(request.user, pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["put"])
    def leader(self, request, pk=None):
        """Hand leadership to another user; the old leader stays as a member."""
        serializer = LeaderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        team = services.reassign_leader(request.user, pk, serializer.validated_data["leader_id"])
        return Response(TeamSerializer(team).data)

    @action(detail=True, methods=["post"], url_path="members")
    def add_member(self, request, pk=None):
        serializer = MemberActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        team = services.add_member(request.user, pk, serializer.validated_data["user_id"])
        return Response(TeamSerializer(team).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["delete"], url_path=r"members/(?P<user_id>\d+)")
    def remove_member(self, request, pk=None, user_id=None):
        team = services.remove_member(request.user, pk, user_id)
        return Response(TeamSerializer(team).data)
