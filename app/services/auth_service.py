"""Business logic for account registration and login."""
import logging
import re
from typing import Dict, Optional, Tuple

from werkzeug.security import check_password_hash, generate_password_hash

logger = logging.getLogger('ludexicon.auth')

_EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
MIN_NAME_LENGTH = 2
MIN_PASSWORD_LENGTH = 8


class AuthService:
    """Registers and authenticates users with email + password, delegating
    persistence to the ``database`` module's helper functions.

    Passwords are stored as salted werkzeug hashes; the plain text never
    reaches the database.
    """

    def __init__(self, db_module) -> None:
        self._db = db_module

    def hash_password(self, password: str) -> str:
        return generate_password_hash(password)

    def register(self, db, name: str, email: str,
                 password: str) -> Tuple[bool, str, Optional[Dict]]:
        """Create a new account.

        Returns:
            ``(True, message, user_dict)`` on success; ``(False, reason, None)``
            when validation fails or the email is already registered.
        """
        name = (name or '').strip()
        email = (email or '').strip().lower()
        password = password or ''

        if len(name) < MIN_NAME_LENGTH:
            return False, f"Name must be at least {MIN_NAME_LENGTH} characters", None
        if not _EMAIL_RE.match(email):
            return False, "A valid email is required", None
        if len(password) < MIN_PASSWORD_LENGTH:
            return False, f"Password must be at least {MIN_PASSWORD_LENGTH} characters", None
        if self._db.get_user_by_email(db, email):
            return False, "Email already registered", None

        user = self._db.create_user(db, name, email, self.hash_password(password))
        logger.info('Registered new user: %s', user.id)
        return True, "User registered successfully", user.to_dict()

    def login(self, db, email: str, password: str) -> Tuple[bool, str, Optional[Dict]]:
        """Verify credentials.

        Returns:
            ``(True, message, user_dict)`` when the password matches;
            ``(False, reason, None)`` otherwise.
        """
        user = self._db.get_user_by_email(db, (email or '').strip())
        if not user or not check_password_hash(user.password_hash, password or ''):
            return False, "Invalid email or password", None
        return True, "Login successful", user.to_dict()
