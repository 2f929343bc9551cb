from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, constr, field_validator

HttpMethod = Literal["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]


# ----- Auth configuration (tagged union on "type") -----


class NoAuth(BaseModel):
    type: Literal["none"] = "none"


class BasicAuth(BaseModel):
    type: Literal["basic"]
    username: str = ""
    password: str = ""


class BearerAuth(BaseModel):
    type: Literal["bearer"]
    token: str = ""


AuthConfig = Annotated[Union[NoAuth, BasicAuth, BearerAuth], Field(discriminator="type")]


def _coerce_auth(value: Any) -> Any:
    # Unknown schemes (e.g. "oauth" drafts) pass headers through unchanged.
    if isinstance(value, dict) and value.get("type") not in ("none", "basic", "bearer"):
        return {"type": "none"}
    return value


# ----- Users / auth -----


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    phone: Optional[str] = None
    avatar: Optional[str] = None
    is_active: bool
    created_at: datetime


class RegisterIn(BaseModel):
    username: constr(strip_whitespace=True, min_length=1, max_length=50)
    email: EmailStr
    password: constr(min_length=1)
    phone: Optional[constr(strip_whitespace=True, min_length=1, max_length=20)] = None


class LoginIn(BaseModel):
    """Either ``username|email + password`` or ``phone + verificationCode``."""

    model_config = ConfigDict(populate_by_name=True)

    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    phone: Optional[str] = None
    verification_code: Optional[str] = Field(default=None, alias="verificationCode")


class SendCodeIn(BaseModel):
    phone: constr(strip_whitespace=True, min_length=1, max_length=20)


class ProfileUpdateIn(BaseModel):
    username: Optional[constr(strip_whitespace=True, min_length=1, max_length=50)] = None
    email: Optional[EmailStr] = None
    phone: Optional[constr(strip_whitespace=True, min_length=1, max_length=20)] = None
    avatar: Optional[str] = None


class ChangePasswordIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    old_password: str = Field(alias="oldPassword")
    new_password: constr(min_length=1) = Field(alias="newPassword")


class AuthResponse(BaseModel):
    success: bool = True
    user: UserOut
    token: str


class UserResponse(BaseModel):
    success: bool = True
    user: UserOut


# ----- Saved requests / favorites -----


class RequestIn(BaseModel):
    name: Optional[str] = None
    url: constr(strip_whitespace=True, min_length=1)
    method: HttpMethod = "GET"
    params: Dict[str, str] = {}
    headers: Dict[str, str] = {}
    body: Optional[Any] = None
    auth: Optional[AuthConfig] = None

    @field_validator("method", mode="before")
    @classmethod
    def upper_method(cls, value):
        return value.upper() if isinstance(value, str) else value

    @field_validator("auth", mode="before")
    @classmethod
    def coerce_auth(cls, value):
        return _coerce_auth(value)


class FavoriteIn(RequestIn):
    folder: Optional[str] = None


class FavoriteUpdateIn(BaseModel):
    name: Optional[str] = None
    url: Optional[constr(strip_whitespace=True, min_length=1)] = None
    method: Optional[HttpMethod] = None
    params: Optional[Dict[str, str]] = None
    headers: Optional[Dict[str, str]] = None
    body: Optional[Any] = None
    folder: Optional[str] = None


class SavedRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    url: str
    method: str
    params: Dict[str, str]
    headers: Dict[str, str]
    body: Optional[Any] = None
    auth: Optional[Dict[str, Any]] = None
    created_at: datetime


class FavoriteOut(SavedRequestOut):
    folder: str


# ----- Environments -----


class EnvironmentIn(BaseModel):
    name: constr(strip_whitespace=True, min_length=1, max_length=100)
    variables: Dict[str, str] = {}


class EnvironmentUpdateIn(BaseModel):
    name: Optional[constr(strip_whitespace=True, min_length=1, max_length=100)] = None
    variables: Optional[Dict[str, str]] = None


class EnvironmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    variables: Dict[str, str]
    is_active: bool


# ----- Proxy -----


class ProxyRequestIn(BaseModel):
    url: constr(strip_whitespace=True, min_length=1)
    method: HttpMethod = "GET"
    headers: Dict[str, str] = {}
    params: Dict[str, str] = {}
    body: Optional[Any] = None
    auth: Optional[AuthConfig] = None
    timeout: Optional[int] = Field(default=None, gt=0, description="Milliseconds")

    @field_validator("method", mode="before")
    @classmethod
    def upper_method(cls, value):
        return value.upper() if isinstance(value, str) else value

    @field_validator("auth", mode="before")
    @classmethod
    def coerce_auth(cls, value):
        return _coerce_auth(value)


class ProxyResponse(BaseModel):
    success: bool
    status: int
    statusText: str
    headers: Dict[str, str]
    data: Any = None
    duration: int


# ----- History -----


class HistoryIn(BaseModel):
    name: Optional[str] = None
    url: constr(strip_whitespace=True, min_length=1)
    method: HttpMethod = "GET"
    headers: Dict[str, str] = {}
    body: Optional[Any] = None
    response_status: Optional[int] = None
    response_status_text: Optional[str] = None
    response_headers: Optional[Dict[str, str]] = None
    response_body: Optional[Any] = None
    response_time_ms: Optional[int] = None
    error_message: Optional[str] = None


class HistoryOut(HistoryIn):
    model_config = ConfigDict(from_attributes=True)

    id: int
    method: str
    created_at: datetime


# ----- Collections -----


class CollectionIn(BaseModel):
    name: constr(strip_whitespace=True, min_length=1, max_length=255)
    description: Optional[str] = None
    parent_id: Optional[str] = None


class CollectionUpdateIn(BaseModel):
    name: Optional[constr(strip_whitespace=True, min_length=1, max_length=255)] = None
    description: Optional[str] = None


class CollectionMoveIn(BaseModel):
    parent_id: Optional[str] = None
    order: Optional[int] = Field(default=None, ge=0)


class CollectionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    parent_id: Optional[str] = None
    order: int = Field(validation_alias="order_index")


class CollectionRequestIn(BaseModel):
    name: constr(strip_whitespace=True, min_length=1, max_length=255)
    method: HttpMethod = "GET"
    url: str = ""
    headers: Dict[str, str] = {}
    query_params: Dict[str, str] = {}
    body: Optional[Any] = None
    auth: Optional[AuthConfig] = None

    @field_validator("auth", mode="before")
    @classmethod
    def coerce_auth(cls, value):
        return _coerce_auth(value)


class CollectionRequestUpdateIn(BaseModel):
    name: Optional[constr(strip_whitespace=True, min_length=1, max_length=255)] = None
    method: Optional[HttpMethod] = None
    url: Optional[str] = None
    headers: Optional[Dict[str, str]] = None
    query_params: Optional[Dict[str, str]] = None
    body: Optional[Any] = None
    auth: Optional[AuthConfig] = None

    @field_validator("auth", mode="before")
    @classmethod
    def coerce_auth(cls, value):
        return _coerce_auth(value)


class CollectionRequestMoveIn(BaseModel):
    collection_id: str
    order: Optional[int] = Field(default=None, ge=0)


class DuplicateIn(BaseModel):
    collection_id: Optional[str] = None


class CollectionRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    method: str
    url: str
    headers: Dict[str, str]
    query_params: Dict[str, str]
    body: Optional[Any] = None
    auth: Optional[Dict[str, Any]] = None
    collection_id: str
    order: int = Field(validation_alias="order_index")


class CollectionTreeOut(BaseModel):
    success: bool = True
    collections: List[CollectionOut]
    requests: List[CollectionRequestOut]
