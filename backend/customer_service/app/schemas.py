# backend/customer_service/app/schemas.py

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class CustomerBase(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)  # "   " is not a name

    firstname: str = Field(
        ..., min_length=1, max_length=255, description="First name of the customer."
    )
    lastname: str = Field(
        ..., min_length=1, max_length=255, description="Last name of the customer."
    )
    age: Optional[int] = Field(None, ge=0, description="Age of the customer.")
    address: Optional[str] = Field(
        None, max_length=255, description="Customer's postal address."
    )


class CustomerCreate(CustomerBase):
    pass


# Schema for updating an existing Customer (all fields optional for partial update)
class CustomerUpdate(BaseModel):
    firstname: Optional[str] = Field(
        None, min_length=1, max_length=255, description="First name of the customer."
    )
    lastname: Optional[str] = Field(
        None, min_length=1, max_length=255, description="Last name of the customer."
    )
    age: Optional[int] = Field(None, ge=0, description="Age of the customer.")
    address: Optional[str] = Field(
        None, max_length=255, description="Customer's postal address."
    )

    model_config = ConfigDict(
        extra="forbid", str_strip_whitespace=True
    )  # Unknown fields are a 400

    @field_validator("firstname", "lastname")
    @classmethod
    def name_not_null(cls, value):
        # Only runs for values present in the payload; age/address may be cleared
        if value is None:
            raise ValueError("may be changed but not removed")
        return value


# Schema for responding with Customer data
class CustomerResponse(CustomerBase):
    id: int = Field(..., description="Unique ID of the customer.")
    created_at: datetime = Field(
        ..., description="Timestamp of when the customer record was created."
    )
    updated_at: Optional[datetime] = Field(
        None, description="Timestamp of the last update to the customer record."
    )

    model_config = ConfigDict(from_attributes=True)  # Enable ORM mode for Pydantic V2


class MessageResponse(BaseModel):
    message: str


class DeleteAllResponse(MessageResponse):
    deleted: int = Field(..., ge=0, description="Number of customers removed.")
