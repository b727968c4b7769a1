import secrets
from dataclasses import dataclass
from datetime import datetime, timezone, timedelta
from jose import jwt, JWTError
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from passlib.context import CryptContext
from dealer_portal.core.config import settings
from dealer_portal.core.enums import UserRole

JWT_ALGORITHM = "HS256"

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


@dataclass(frozen=True)
class Principal:
    code: str
    role: UserRole

    @property
    def is_staff(self) -> bool:
        return self.role == UserRole.STAFF


def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(plain_password: str, stored_password: str) -> bool:
    if not stored_password:
        return False
    # Dealers created before hashing was introduced still hold plain text
    if pwd_context.identify(stored_password, required=False) is None:
        return secrets.compare_digest(plain_password.encode(), stored_password.encode())
    try:
        return pwd_context.verify(plain_password, stored_password)
    except Exception:
        return False

def create_access_token(subject: str, role: str, expires_minutes: int | None = None) -> str:
    expires = expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    expire_dt = datetime.now(timezone.utc) + timedelta(minutes=expires)
    to_encode = {"sub": str(subject), "role": str(role), "exp": expire_dt}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=JWT_ALGORITHM)

async def get_current_user(token: str = Depends(oauth2_scheme)) -> Principal:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[JWT_ALGORITHM])
        subject = payload.get("sub")
        role = UserRole(payload.get("role"))
        if subject is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    except (JWTError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return Principal(code=subject, role=role)

def require_staff(user: Principal = Depends(get_current_user)) -> Principal:
    if not user.is_staff:
        raise HTTPException(status_code=403, detail="Staff access required")
    return user
