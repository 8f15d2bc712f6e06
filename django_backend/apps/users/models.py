from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.db import models
from django.db.models.functions import Lower


class UserRole(models.TextChoices):
    ADMIN = "admin", "Admin"
    TEAM_LEADER = "team_leader", "Team Leader"
    MEMBER = "member", "Member"


class TeamRole(models.TextChoices):
    TEAM_LEADER = "team_leader", "Team Leader"
    MEMBER = "member", "Member"


class UserManager(BaseUserManager):
    use_in_migrations = True

    def normalize_email(self, email):
        return (email or "").strip().lower()

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError("The email must be set")
        user = self.model(email=self.normalize_email(email), **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        extra_fields.setdefault("role", UserRole.MEMBER)
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault("role", UserRole.ADMIN)
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        return self._create_user(email, password, **extra_fields)

    def get_by_email(self, email):
        return self.get(email__iexact=(email or "").strip())


class User(AbstractUser):
    username = None
    email = models.EmailField(unique=True)
    name = models.CharField(max_length=100)
    role = models.CharField(
        max_length=16,
        choices=UserRole.choices,
        default=UserRole.MEMBER,
        db_index=True,
    )

    phone = models.CharField(max_length=32, blank=True, default="")
    department = models.CharField(max_length=100, blank=True, default="")
    position = models.CharField(max_length=100, blank=True, default="")
    avatar = models.URLField(blank=True, default="")

    created_by = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="users_created",
    )
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["name"]

    objects = UserManager()

    class Meta:
        indexes = [
            models.Index(fields=["is_active"], name="users_user_is_acti_9c1a3b_idx"),
        ]

    def __str__(self):
        return self.email

    @property
    def is_admin(self):
        return self.role == UserRole.ADMIN

    @property
    def can_lead_teams(self):
        return self.role in (UserRole.ADMIN, UserRole.TEAM_LEADER)


class Team(models.Model):
    name = models.CharField(max_length=100)
    description = models.CharField(max_length=500, blank=True, default="")
    leader = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name="teams_led",
    )
    members = models.ManyToManyField(
        User,
        through="TeamMembership",
        related_name="teams",
        blank=True,
    )
    is_active = models.BooleanField(default=True)
    allow_member_invite = models.BooleanField(default=False)
    public_visibility = models.BooleanField(default=False)
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        related_name="teams_created",
        null=True,
        blank=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(Lower("name"), name="uq_team_name_ci"),
        ]
        indexes = [
            models.Index(fields=["is_active"], name="users_team_is_acti_4e7d2f_idx"),
        ]
        ordering = ["-created_at"]

    def __str__(self):
        return self.name

    def is_leader(self, user):
        return self.leader_id == user.pk

    def is_member(self, user):
        """Check if user is a member of the team"""
        return self.memberships.filter(user_id=user.pk).exists()

    def leadership_violations(self):
        """
        Describe every way the leader invariant is broken.

        The leader must appear in the member set tagged ``team_leader`` and
        no other member may carry that tag.
        """
        problems = []
        tagged = list(
            self.memberships.filter(role=TeamRole.TEAM_LEADER).values_list("user_id", flat=True)
        )
        if self.leader_id not in tagged:
            problems.append("leader is not a member tagged team_leader")
        others = [uid for uid in tagged if uid != self.leader_id]
        if others:
            problems.append(f"members {others} are tagged team_leader but do not lead the team")
        return problems

    @property
    def member_count(self):
        """Get the number of members in the team"""
        return self.memberships.count()


class TeamMembership(models.Model):
    team = models.ForeignKey(Team, on_delete=models.CASCADE, related_name="memberships")
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="team_memberships")
    role = models.CharField(max_length=16, choices=TeamRole.choices, default=TeamRole.MEMBER)
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["team", "user"], name="uq_team_user"),
        ]
        ordering = ["joined_at"]

    def __str__(self):
        return f"{self.user_id} in {self.team_id} ({self.role})"
