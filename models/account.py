from models.base_model import Base, BaseModel
from sqlalchemy import Boolean, Column, Enum, String
from sqlalchemy.orm import deferred, relationship

ROLES = ("user", "admin")


class Account(BaseModel, Base):
    __tablename__ = "accounts"
    username = Column(String(30), nullable=False, unique=True, index=True)
    # always stored lower-cased so uniqueness is case-insensitive
    email = Column(String(255), nullable=False, unique=True, index=True)
    # only loaded when a caller asks for credentials
    password_hash = deferred(Column(String(255), nullable=False), raiseload=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    profile_image = Column(String(2048), nullable=True)
    role = Column(Enum(*ROLES, name="account_role"), nullable=False, default="user")
    is_active = Column(Boolean, nullable=False, default=True)

    refresh_tokens = relationship(
        "RefreshToken",
        back_populates="account",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")

    def __repr__(self):
        return f"<Account {self.username}>"
