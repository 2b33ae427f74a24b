from models.base_model import Base
from models.account import Account
from models.refresh_token import RefreshToken
from models.account_store import AccountStore

__all__ = ["Base", "Account", "RefreshToken", "AccountStore"]
