"""Pet models for PetCare."""

from datetime import datetime
from pydantic import BaseModel, Field


class PetBase(BaseModel):
    """Base pet model with common fields."""
    name: str = Field(..., min_length=1, max_length=100)
    age: str = Field(..., min_length=1, max_length=50)
    category: str | None = Field(default=None, max_length=50)
    breed: str | None = Field(default=None, max_length=100)
    photo: str | None = Field(default=None, max_length=2048)
    description: str | None = Field(default=None, max_length=2000)


class PetCreate(PetBase):
    """Model for creating a pet."""

    model_config = {"extra": "forbid"}


class PetUpdate(BaseModel):
    """Model for updating a pet."""
    name: str | None = Field(default=None, min_length=1, max_length=100)
    age: str | None = Field(default=None, min_length=1, max_length=50)
    category: str | None = Field(default=None, max_length=50)
    breed: str | None = Field(default=None, max_length=100)
    photo: str | None = Field(default=None, max_length=2048)
    description: str | None = Field(default=None, max_length=2000)

    model_config = {"extra": "forbid"}


class Pet(PetBase):
    """Pet model for API responses."""
    id: str = Field(..., alias="_id")
    user_id: str
    created_at: datetime
    updated_at: datetime

    model_config = {"populate_by_name": True}
