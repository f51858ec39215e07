"""
Request schemas

Every JSON body and query string accepted by the API is validated by one of
these pydantic models before it reaches the database layer. Wire names follow
the web client (camelCase where the client sends camelCase); attribute names
are snake_case. A ``pydantic.ValidationError`` raised while parsing is turned
into an API_001 envelope by the app's error handlers.
"""

from datetime import date, datetime
from typing import Any, Dict, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator

PREFECTURES = (
    'hokkaido', 'aomori', 'iwate', 'miyagi', 'akita', 'yamagata', 'fukushima',
    'ibaraki', 'tochigi', 'gunma', 'saitama', 'chiba', 'tokyo', 'kanagawa',
    'niigata', 'toyama', 'ishikawa', 'fukui', 'yamanashi', 'nagano', 'gifu',
    'shizuoka', 'aichi', 'mie', 'shiga', 'kyoto', 'osaka', 'hyogo', 'nara',
    'wakayama', 'tottori', 'shimane', 'okayama', 'hiroshima', 'yamaguchi',
    'tokushima', 'kagawa', 'ehime', 'kochi', 'fukuoka', 'saga', 'nagasaki',
    'kumamoto', 'oita', 'miyazaki', 'kagoshima', 'okinawa',
)

Prefecture = Literal[PREFECTURES]  # type: ignore[valid-type]
IdeaStatusName = Literal['published', 'closed', 'soldout', 'overdue']
LogType = Literal['login', 'blog_view', 'access', 'error', 'system']
SystemLogType = Literal['admin_action', 'scheduled_task', 'migration', 'config_change', 'maintenance', 'other']
ErrorLevel = Literal['debug', 'info', 'warning', 'error', 'critical']


class Schema(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


# -----------------------------
# Listing
# -----------------------------

class ListQuery(Schema):
    q: Optional[str] = None
    limit: int = Field(50, ge=1, le=200)
    offset: int = Field(0, ge=0)


class IdeaListQuery(ListQuery):
    status: Optional[IdeaStatusName] = None


# -----------------------------
# Auth
# -----------------------------

class SignupRequest(Schema):
    email: str = Field(..., max_length=320, pattern=r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
    password: str = Field(..., min_length=8, max_length=128)
    display_name: str = Field(..., min_length=1, max_length=200)


class LoginRequest(Schema):
    email: str = Field(..., min_length=1, max_length=320)
    password: str = Field(..., min_length=1, max_length=128)


# -----------------------------
# Ideas
# -----------------------------

class IdeaCreate(Schema):
    title: str = Field(..., min_length=1, max_length=200)
    summary: str = Field(..., min_length=1)
    detail: Optional[str] = None
    price: int = Field(0, ge=0)
    is_exclusive: bool = False
    deadline: Optional[datetime] = None


class IdeaUpdate(Schema):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    summary: Optional[str] = Field(None, min_length=1)
    detail: Optional[str] = None
    price: Optional[int] = Field(None, ge=0)
    is_exclusive: Optional[bool] = None
    status: Optional[IdeaStatusName] = None
    deadline: Optional[datetime] = None


class CommentCreate(Schema):
    text: str = Field(..., min_length=30, max_length=5000)


class PurchaseRequest(Schema):
    phone_number: str = Field(..., alias='phoneNumber', min_length=1, max_length=32, pattern=r'^\d+$')
    company: str = Field(..., min_length=1, max_length=200)
    manager: str = Field(..., min_length=1, max_length=200)
    industry: Optional[str] = Field(None, max_length=200)
    formal_documentation: bool = Field(False, alias='formalDocumentation')


# -----------------------------
# Admin
# -----------------------------

class PaymentStatusUpdate(Schema):
    id: UUID
    is_paid: StrictBool = Field(..., alias='isPaid')


class PurchaseCancel(Schema):
    id: UUID


class UserDetailsUpdate(Schema):
    user_id: UUID
    full_name: Optional[str] = Field(None, max_length=200)
    email: Optional[str] = Field(None, max_length=320, pattern=r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
    bank_name: Optional[str] = Field(None, max_length=200)
    branch_name: Optional[str] = Field(None, max_length=200)
    account_type: Optional[Literal['ordinary', 'current']] = None
    account_number: Optional[str] = Field(None, max_length=64)
    account_holder: Optional[str] = Field(None, max_length=200)
    gender: Optional[Literal['male', 'female', 'other']] = None
    birth_date: Optional[str] = Field(None, max_length=32)
    prefecture: Optional[Prefecture] = None

    def changes(self):
        """Fields the caller actually sent, explicit nulls included."""
        return self.model_dump(exclude_unset=True, exclude={'user_id'})


class LogDownloadRequest(Schema):
    log_type: LogType = Field(..., alias='logType')
    start_date: Optional[date] = Field(None, alias='startDate')
    end_date: Optional[date] = Field(None, alias='endDate')

    @field_validator('start_date', 'end_date', mode='before')
    @classmethod
    def blank_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


# -----------------------------
# Log ingestion
# -----------------------------

class AccessLogIn(Schema):
    request_method: str = Field(..., alias='requestMethod', max_length=10)
    request_path: str = Field(..., alias='requestPath')
    request_query: Optional[str] = Field(None, alias='requestQuery')
    response_status: Optional[int] = Field(None, alias='responseStatus')
    response_time_ms: Optional[int] = Field(None, alias='responseTimeMs')
    referer: Optional[str] = None
    session_id: Optional[str] = Field(None, alias='sessionId', max_length=100)


class ErrorLogIn(Schema):
    error_level: ErrorLevel = Field('error', alias='errorLevel')
    error_code: Optional[str] = Field(None, alias='errorCode', max_length=50)
    error_message: str = Field(..., alias='errorMessage')
    error_stack: Optional[str] = Field(None, alias='errorStack')
    request_path: Optional[str] = Field(None, alias='requestPath')
    request_method: Optional[str] = Field(None, alias='requestMethod', max_length=10)
    additional_info: Optional[Dict[str, Any]] = Field(None, alias='additionalInfo')


class SystemLogIn(Schema):
    log_type: SystemLogType = Field('other', alias='logType')
    action: str = Field(..., min_length=1, max_length=100)
    target_table: Optional[str] = Field(None, alias='targetTable', max_length=100)
    target_id: Optional[str] = Field(None, alias='targetId', max_length=100)
    description: Optional[str] = None
    before_data: Optional[Dict[str, Any]] = Field(None, alias='beforeData')
    after_data: Optional[Dict[str, Any]] = Field(None, alias='afterData')


class BlogViewIn(Schema):
    blog_id: str = Field(..., alias='blogId', min_length=1, max_length=100)
    session_id: Optional[str] = Field(None, alias='sessionId', max_length=100)


# -----------------------------
# Payments
# -----------------------------

class CheckoutRequest(Schema):
    sold_id: UUID
