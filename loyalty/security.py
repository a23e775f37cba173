"""Password hashing."""
from passlib.context import CryptContext

# pbkdf2_sha256 is pure python, so no native bcrypt build is required
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)
