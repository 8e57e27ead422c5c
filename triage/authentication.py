"""
Token authentication for the intake API.

Login and token issuance live in the identity service; this API only
verifies the DRF tokens it is handed.  Clients of that service send
them as ``Bearer``, older clients as ``Token``; both are accepted.
"""
from __future__ import annotations

from rest_framework import authentication, exceptions


class TokenAuthentication(authentication.TokenAuthentication):
    keyword = 'Token'
    keywords = (b'token', b'bearer')

    def authenticate(self, request):
        auth = authentication.get_authorization_header(request).split()
        if not auth or auth[0].lower() not in self.keywords:
            return None
        if len(auth) != 2:
            raise exceptions.AuthenticationFailed('Invalid token header.')
        try:
            key = auth[1].decode()
        except UnicodeError:
            raise exceptions.AuthenticationFailed('Invalid token header. Token contains invalid characters.')
        return self.authenticate_credentials(key)

    def authenticate_credentials(self, key):
        user, token = super().authenticate_credentials(key)
        # Queue permissions are role based; an account without a known role sees nothing.
        if user.role not in {role for role, _ in user.ROLE_CHOICES}:
            raise exceptions.AuthenticationFailed('Account has no intake role.')
        return user, token
