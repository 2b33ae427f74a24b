"""
RefreshToken model: the per-account allow-list of outstanding refresh tokens.
A refresh JWT is honored only while its exact string is present here and
expires_at has not passed.
Fields:
- token (unique) - the issued JWT string
- account_id (String(36)) - FK to accounts.id
- created_at, expires_at
"""
from datetime import timedelta

from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base, utcnow

# Fixed lifetime of a stored token row, independent of the JWT's own exp
REFRESH_TOKEN_TTL = timedelta(days=7)


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    token = Column(String(1024), nullable=False, unique=True, index=True)
    account_id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)

    account = relationship("Account", back_populates="refresh_tokens")

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if self.created_at is None:
            self.created_at = utcnow()
        if self.expires_at is None:
            self.expires_at = self.created_at + REFRESH_TOKEN_TTL

    def __repr__(self):
        return f"<RefreshToken account={self.account_id}>"
