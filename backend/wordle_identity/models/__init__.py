"""Database models"""

from wordle_identity.models.account import Account
from wordle_identity.models.session import UserSession
from wordle_identity.models.oauth_state import OAuthState

__all__ = ["Account", "UserSession", "OAuthState"]
