from django.conf import settings
from rest_framework.authentication import BaseAuthentication, get_authorization_header

from apps.common.exceptions import MalformedCredential

AUTH_HEADER_TYPE = b"bearer"


class SessionTokenAuthentication(BaseAuthentication):
    """
    Authenticate requests carrying an access token.

    The token is read from the ``Authorization: Bearer`` header, falling back
    to the access cookie. Requests without a token are left anonymous so that
    the permission layer decides; a present but bad token is rejected.
    """

    def authenticate(self, request):
        token = self._get_token(request)
        if token is None:
            return None

        from apps.users.services import resolve_session

        user = resolve_session(token)
        return user, token

    def _get_token(self, request):
        header = get_authorization_header(request).split()
        if header:
            if header[0].lower() != AUTH_HEADER_TYPE:
                return None
            if len(header) != 2:
                raise MalformedCredential("Invalid Authorization header")
            return header[1].decode("latin-1")

        return request.COOKIES.get(getattr(settings, "AUTH_COOKIE_ACCESS", "access_token"))

    def authenticate_header(self, request):
        return 'Bearer realm="api"'
