# scriptgate/app/schemas/admin.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class AdminLoginRequest(BaseModel):
    password: str = Field(min_length=1)


class AdminLoginResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    token: str
    expires_in: int = Field(alias="expiresIn")
    message: str = "Admin login successful"


class AdminVerifyResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    valid: bool = True
    expires_at: int = Field(alias="expiresAt")


class AdminPasswordChangeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field(min_length=1, alias="currentPassword")
    new_password: str = Field(min_length=1, alias="newPassword")
    token: Optional[str] = None


class MessageResponse(BaseModel):
    success: bool = True
    message: str
