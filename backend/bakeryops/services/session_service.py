# Overview: Bearer token issuance and lookup.

"""
API tokens.

Tokens are 32 random bytes (64 hex chars) handed to the operator once and
stored only as their SHA-256 hash. Issuing a new token replaces the old one.
"""

import hashlib
import secrets

from ..extensions import db
from ..models import User
from bakeryops.time_utils import utcnow


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def issue_token(user: User) -> str:
    """Issue a fresh token for the user, commit, and return the plaintext."""
    token = generate_token()
    user.token_hash = hash_token(token)
    user.token_issued_at = utcnow()
    db.session.commit()
    return token


def resolve_token(token: str | None) -> User | None:
    if not token:
        return None
    user = db.session.query(User).filter_by(token_hash=hash_token(token)).first()
    if not user or not user.is_active:
        return None
    return user
