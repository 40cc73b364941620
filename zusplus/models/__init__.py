# zusplus/models/__init__.py
from zusplus.models.user import User
from zusplus.models.mfa_factor import MFAFactor
from zusplus.models.mfa_challenge import MFAChallenge
from zusplus.models.auth_session import AuthSession

__all__ = ["User", "MFAFactor", "MFAChallenge", "AuthSession"]
