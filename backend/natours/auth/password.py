import bcrypt
from natours.core.config import settings

# bcrypt ignores (and newer releases reject) input past this many bytes
MAX_PASSWORD_BYTES = 72


class PasswordManager:
    """Salted bcrypt hashing for user credentials."""

    def __init__(self, rounds: int):
        self.rounds = rounds

    def hash_password(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    def verify_password(self, password: str, hashed_password: str) -> bool:
        if not password or not hashed_password:
            return False
        try:
            return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
        except ValueError:
            # Malformed hash or over-long input
            return False


# Global password manager instance
password_manager = PasswordManager(settings.bcrypt_rounds)
