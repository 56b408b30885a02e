from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from config.constants import DEFAULT_COUNTRY

PINCODE_PATTERN = r"^\d{6}$"
GSTIN_PATTERN = r"^\d{2}[A-Z]{5}\d{4}[A-Z][A-Z\d]Z[A-Z\d]$"
PAN_PATTERN = r"^[A-Z]{5}[0-9]{4}[A-Z]$"


class DocumentStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class VerificationStatus(str, Enum):
    PENDING = "pending"
    IN_REVIEW = "in_review"
    VERIFIED = "verified"
    REJECTED = "rejected"


class SellerDocumentType(str, Enum):
    COMPANY_REGISTRATION = "company_registration"
    GST_CERTIFICATE = "gst_certificate"
    PAN_CARD = "pan_card"
    OTHER = "other"


class _Schema(BaseModel):
    model_config = ConfigDict(use_enum_values=True, extra="forbid")


class Address(_Schema):
    street: Optional[str] = ""
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    pincode: str = Field(..., pattern=PINCODE_PATTERN)
    country: str = DEFAULT_COUNTRY


class ContactDetails(_Schema):
    email: EmailStr
    phone: str = Field(..., min_length=1)
    alternate_phone: Optional[str] = ""

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()


class ContactPerson(_Schema):
    name: str = Field(..., min_length=1)
    designation: Optional[str] = ""
    email: Optional[EmailStr] = None
    phone: Optional[str] = ""

    @field_validator("email", mode="before")
    @classmethod
    def blank_email(cls, v):
        return v or None


class BusinessDetails(_Schema):
    gstin: str = Field(..., pattern=GSTIN_PATTERN)
    pan: str = Field(..., pattern=PAN_PATTERN)
    cin_number: Optional[str] = ""


class SellerProfileIn(_Schema):
    company_name: str = Field(..., min_length=1)
    brand_name: Optional[str] = ""
    address: Address
    contact_details: ContactDetails
    official_contact_person: ContactPerson
    business_details: BusinessDetails
