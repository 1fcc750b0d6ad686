"""
Authentication views.

Username/password login returning both a DRF token and a JWT pair, plus
JWT refresh and logout.  The authentication class itself lives in
``backoffice.authentication`` so REST framework can import it from the
settings without importing these views.
"""
from __future__ import annotations

import logging

from django.contrib.auth import authenticate
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenRefreshView
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle

from backoffice.serializers.auth import LoginSerializer
from backoffice.services.audit import log_action

logger = logging.getLogger(__name__)


class LoginRateThrottle(AnonRateThrottle):
    """Per-IP limit on login attempts, rate ``login`` in DEFAULT_THROTTLE_RATES."""
    scope = 'login'


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([LoginRateThrottle])
def login_view(request):
    """Log in with ``username`` and ``password``.

    The role always comes from the stored user, never from the request.
    """
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    username = s.validated_data['username']

    user = authenticate(request, username=username, password=s.validated_data['password'])
    ip = request.META.get('REMOTE_ADDR')
    if not user:
        log_action(user=None, action='login', object_type='user',
                   detail={'result': 'fail', 'username': username, 'ip': ip})
        logger.info('failed login for %s from %s', username, ip)
        return Response({'ok': False, 'detail': 'invalid username or password'}, status=400)

    log_action(user=user, action='login', object_type='user', object_id=user.id,
               detail={'result': 'ok', 'ip': ip})

    token_obj, _ = Token.objects.get_or_create(user=user)
    refresh = RefreshToken.for_user(user)
    return Response({
        'ok': True,
        'token': token_obj.key,
        'jwt_access': str(refresh.access_token),
        'jwt_refresh': str(refresh),
        'role': user.role,
        'user': {
            'id': user.id,
            'username': user.username,
            'name': user.get_full_name() or user.username,
            'role': user.role,
        },
    }, status=200)


@api_view(['POST'])
@permission_classes([AllowAny])
def jwt_refresh_view(request):
    """Return a new access token from a refresh token."""
    resp = TokenRefreshView.as_view()(request._request)
    if isinstance(resp, Response):
        data = dict(resp.data)
        if 'access' in data and 'jwt_access' not in data:
            data['jwt_access'] = data.pop('access')
        return Response(data, status=resp.status_code)
    return resp


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def jwt_logout_view(request):
    """Blacklist the given refresh token, or every outstanding one of the user."""
    refresh = request.data.get('refresh')
    if refresh:
        try:
            RefreshToken(refresh).blacklist()
        except TokenError as e:
            return Response({'ok': False, 'detail': str(e)}, status=400)
        return Response({'ok': True, 'blacklisted': 1})
    count = 0
    for token in OutstandingToken.objects.filter(user=request.user):
        _, created = BlacklistedToken.objects.get_or_create(token=token)
        count += int(created)
    return Response({'ok': True, 'blacklisted': count})
