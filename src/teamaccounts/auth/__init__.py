"""Authentication — OAuth providers, passwordless email links, sessions.

Learn: Two ways to sign in, one session:
1. Google / Microsoft → OAuth callback → UserService.sign_in_or_sign_up
2. Email → one-time link → LoginTokenService.accept_token

Both end with the user's id stored in the signed session cookie.
"""
