from .identity import (
    SessionToken,
    authenticate,
    change_password,
    issue_session,
    logout,
    refresh_session,
    register,
    resolve_session,
)
from .accounts import (
    create_user,
    delete_user,
    demote,
    get_user,
    promote,
    update_user,
    user_stats,
)
from .teams import (
    add_member,
    create_team,
    delete_team,
    ensure_member,
    get_team,
    reassign_leader,
    remove_member,
    resolve_active_user,
    team_queryset,
    update_team,
)
