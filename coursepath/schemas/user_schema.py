from pydantic import BaseModel, EmailStr, Field
from typing import List, Literal, Optional
from datetime import datetime

class UserBase(BaseModel):
    email: EmailStr
    display_name: Optional[str] = Field(None, max_length=255)
    role: Optional[str] = 'Learner'

# Created AFTER Firebase authentication, keyed by the token's UID
class UserCreateInternal(UserBase):
    firebase_uid: str

class UserDisplay(UserBase):
    id: int
    firebase_uid: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# Schema representing the data decoded from a Firebase ID token
class TokenData(BaseModel):
    firebase_uid: str
    email: EmailStr
    name: Optional[str] = None

# Body of /auth/register: the client signs up with Firebase first, then sends its ID token
class UserRegisterRequest(BaseModel):
    firebase_id_token: str
    display_name: Optional[str] = Field(None, max_length=255)

class AuthResponse(BaseModel):
    message: str
    user: Optional[UserDisplay] = None

# --- Admin user management ---
class AdminUserUpdate(BaseModel):
    """What an admin can change on an account. Service accounts are never created or edited here."""
    display_name: Optional[str] = Field(None, max_length=255)
    role: Optional[Literal["Learner", "Admin"]] = Field(None, description="Learner or Admin")

class PaginatedUsers(BaseModel):
    total: int
    users: List[UserDisplay]
    page: int
    size: int
