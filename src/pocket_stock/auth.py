"""Authentication session — the current user's identifier, if any."""

from typing import Optional

from PySide6.QtCore import QObject, Signal

from pocket_stock.database.models import GUEST_USER_ID


class AuthSession(QObject):
    """Holds the signed-in user and the access token for the backend.

    Entity access falls back to the shared ``"guest"`` scope when nobody
    is signed in.
    """

    user_changed = Signal(object)  # new user id or None

    def __init__(self, user_id: Optional[str] = None,
                 access_token: Optional[str] = None, parent=None):
        super().__init__(parent)
        self._user_id = user_id
        self._access_token = access_token

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    @property
    def effective_user_id(self) -> str:
        return self._user_id or GUEST_USER_ID

    @property
    def is_authenticated(self) -> bool:
        return self._user_id is not None

    def sign_in(self, user_id: str, access_token: Optional[str] = None):
        self._user_id = user_id
        self._access_token = access_token
        self.user_changed.emit(user_id)

    def sign_out(self):
        self._user_id = None
        self._access_token = None
        self.user_changed.emit(None)
