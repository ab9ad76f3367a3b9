from __future__ import annotations

from ..extensions import db
from bakeryops.time_utils import to_utc_z


ROLE_ADMIN = "admin"
ROLE_OPERATOR = "operator"
ROLE_AGENT = "agent"
VALID_ROLES = {ROLE_ADMIN, ROLE_OPERATOR, ROLE_AGENT}


class User(db.Model):
    """
    Operator of the order desk.

    API access uses bearer tokens issued from the CLI; only the SHA-256
    hash of the token is stored.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, unique=True)
    display_name = db.Column(db.String(128), nullable=False)
    role = db.Column(db.String(16), nullable=False, default=ROLE_OPERATOR)
    agent_id = db.Column(db.Integer, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    token_hash = db.Column(db.String(64), nullable=True, unique=True, index=True)
    token_issued_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "display_name": self.display_name,
            "role": self.role,
            "agent_id": self.agent_id,
            "is_active": self.is_active,
            "token_issued_at": to_utc_z(self.token_issued_at),
            "created_at": to_utc_z(self.created_at),
        }
