from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class WhatsAppCredentials(BaseModel):
    phone_number_id: str = Field(..., min_length=3, max_length=64)
    business_account_id: str | None = Field(default=None, max_length=64)
    access_token: str = Field(..., min_length=10)
    verify_token: str | None = Field(default=None, max_length=255)
    catalog_id: str | None = Field(default=None, max_length=64)
    api_version: str = Field(default="v18.0", pattern=r"^v\d+\.\d+$")


class WhatsAppCredentialsUpdate(BaseModel):
    phone_number_id: str | None = Field(default=None, min_length=3, max_length=64)
    business_account_id: str | None = Field(default=None, max_length=64)
    access_token: str | None = Field(default=None, min_length=10)
    verify_token: str | None = Field(default=None, max_length=255)
    catalog_id: str | None = Field(default=None, max_length=64)
    api_version: str | None = Field(default=None, pattern=r"^v\d+\.\d+$")


class RazorpayCredentials(BaseModel):
    key_id: str = Field(..., min_length=5)
    key_secret: str = Field(..., min_length=5)
    webhook_secret: str | None = None


class RazorpayCredentialsUpdate(BaseModel):
    key_id: str | None = Field(default=None, min_length=5)
    key_secret: str | None = Field(default=None, min_length=5)
    webhook_secret: str | None = None


class SmsCredentials(BaseModel):
    provider: Literal["msg91", "twilio", "none"] = "none"
    auth_key: str | None = None
    sender_id: str | None = None
    template_id: str | None = None
    account_sid: str | None = None
    auth_token: str | None = None
    from_number: str | None = None


class TenantSettings(BaseModel):
    welcome_message: str | None = Field(default=None, max_length=1024)
    currency: str = Field(default="INR", min_length=3, max_length=3)
    timezone: str = "Asia/Kolkata"


class TenantSettingsUpdate(BaseModel):
    welcome_message: str | None = Field(default=None, max_length=1024)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    timezone: str | None = None


class TenantCreate(BaseModel):
    business_name: str = Field(..., min_length=2, max_length=160)
    business_phone: str = Field(..., min_length=8, max_length=30)
    business_email: EmailStr | None = None
    whatsapp: WhatsAppCredentials
    razorpay: RazorpayCredentials
    sms: SmsCredentials | None = None
    settings: TenantSettings = Field(default_factory=TenantSettings)


class TenantUpdate(BaseModel):
    business_name: str | None = Field(default=None, min_length=2, max_length=160)
    business_phone: str | None = Field(default=None, min_length=8, max_length=30)
    business_email: EmailStr | None = None
    whatsapp: WhatsAppCredentialsUpdate | None = None
    razorpay: RazorpayCredentialsUpdate | None = None
    sms: SmsCredentials | None = None
    settings: TenantSettingsUpdate | None = None


class TenantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    tenant_id: str
    business_name: str
    business_phone: str
    business_email: str | None = None
    phone_number_id: str
    business_account_id: str | None = None
    catalog_id: str | None = None
    api_version: str
    sms_provider: str | None = None
    settings: dict
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TenantListResponse(BaseModel):
    items: list[TenantResponse]
    total: int
    limit: int
    skip: int
