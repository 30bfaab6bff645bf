from pydantic import BaseModel, Field, ValidationError, ConfigDict, field_validator
from typing import Any, Dict, List, Literal, Optional, Union


class VaultRequest(BaseModel):
    # Wire payloads are camelCase; attributes mirror the model columns
    model_config = ConfigDict(populate_by_name=True, extra='ignore')


class RegisterRequest(VaultRequest):
    username: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    full_name: Optional[str] = Field(None, alias='fullName')

    @field_validator('username', 'email')
    @classmethod
    def strip_whitespace(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError('must not be blank')
        return value


class LoginRequest(VaultRequest):
    identifier: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None

    @property
    def handle(self) -> Optional[str]:
        """Email or username, whichever the client sent"""
        return self.identifier or self.username


class ProfileUpdateRequest(VaultRequest):
    full_name: Optional[str] = Field(None, alias='fullName')
    bio: Optional[str] = None
    username: Optional[str] = None
    avatar: Optional[str] = None
    is_anonymous: Optional[bool] = Field(None, alias='isAnonymous')
    details: Optional[Dict[str, Any]] = None
    interested_in: Optional[Union[str, List[str]]] = Field(None, alias='interestedIn')
    location: Optional[Union[str, Dict[str, Any]]] = None
    notifications: Optional[bool] = None


class PhotoUploadRequest(VaultRequest):
    photo_url: str = Field(..., min_length=1, alias='photoUrl', description="Base64 data URL or remote URL")


class PhotoDeleteRequest(VaultRequest):
    photo_index: Any = Field(None, alias='photoIndex')


class SendMessageRequest(VaultRequest):
    receiver: str = Field(..., min_length=1)
    text: str = ''


class ReportRequest(VaultRequest):
    reason: Optional[str] = None
    description: Optional[str] = None


class ApplicationRequest(VaultRequest):
    username: Optional[str] = None
    dob: Optional[str] = None
    liveness_image: Optional[str] = Field(None, alias='livenessImage')


class SubscribeRequest(VaultRequest):
    payment_token: Optional[str] = Field(None, alias='paymentToken')
    email: Optional[str] = None


class MarkReadRequest(VaultRequest):
    notification_id: Optional[str] = Field(None, alias='notificationId')
    mark_all: bool = Field(False, alias='markAll')


class AdminCreateUserRequest(VaultRequest):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    email: Optional[str] = None
    full_name: Optional[str] = Field(None, alias='fullName')
    is_member: bool = Field(False, alias='isMember')
    is_verified: bool = Field(False, alias='isVerified')


class AdminUpdateUserRequest(VaultRequest):
    username: Optional[str] = None
    email: Optional[str] = None
    full_name: Optional[str] = Field(None, alias='fullName')
    is_member: Optional[bool] = Field(None, alias='isMember')
    is_verified: Optional[bool] = Field(None, alias='isVerified')
    details: Optional[Dict[str, Any]] = None


class BulkActionRequest(VaultRequest):
    usernames: List[str] = Field(..., min_length=1)
    action: Literal['makeVip', 'removeVip', 'verify', 'unverify', 'delete']


class BroadcastRequest(VaultRequest):
    recipients: Union[Literal['all'], List[str]] = Field(default_factory=list)
    message: str = Field(..., min_length=1)


def parse_request(schema, data):
    """Validate a JSON body against a request schema (None is treated as {})"""
    return schema.model_validate(data or {})


def first_error_message(error: ValidationError) -> str:
    """Human readable summary of the first validation failure"""
    errors = error.errors()
    if not errors:
        return 'Invalid request'
    first = errors[0]
    field = '.'.join(str(part) for part in first.get('loc', ()) if part != '__root__')
    message = first.get('msg', 'Invalid value')
    return f"{field}: {message}" if field else message
