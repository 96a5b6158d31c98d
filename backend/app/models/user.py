"""
Modèles SQLAlchemy pour les utilisateurs et leurs codes de récupération 2FA.
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False)  # toujours en minuscules
    password_hash = Column(String(255), nullable=True)        # NULL : connexion par mot de passe impossible
    role = Column(String(50), nullable=False, default="user")
    totp_secret = Column(String(100), nullable=True)          # base32
    totp_auth_url = Column(String(500), nullable=True)        # otpauth:// (QR code)
    is_totp_enabled = Column(Boolean, nullable=False, default=False)
    reset_password_token_hash = Column(String(255), nullable=True)
    reset_password_expires = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    recovery_codes = relationship(
        "RecoveryCode",
        back_populates="user",
        cascade="all, delete-orphan",
    )


class RecoveryCode(Base):
    """Code de secours à usage unique (haché bcrypt), 8 générés à l'inscription."""
    __tablename__ = "recovery_codes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    code_hash = Column(String(255), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)  # NULL = encore utilisable
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="recovery_codes")
