"""teamaccounts — user accounts and sign-in for team-based SaaS apps.

OAuth (Google, Microsoft) and passwordless email-link sign-in, account
reconciliation across providers, encrypted OAuth tokens, team membership
checks, and the Stripe billing snapshot kept on each user.
"""

__version__ = "0.1.0"
