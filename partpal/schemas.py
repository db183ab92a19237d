from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional
from datetime import datetime
from .models import PartCondition, PartStatus

class PartDimensions(BaseModel):
    length: float = Field(..., ge=0)
    width: float = Field(..., ge=0)
    height: float = Field(..., ge=0)

class PartBase(BaseModel):
    vehicle_id: str
    seller_id: str
    category_id: str
    name: str = Field(..., min_length=1, max_length=255)
    part_number: Optional[str] = None
    description: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    location: Optional[str] = None
    weight: Optional[float] = Field(None, ge=0)
    dimensions: Optional[PartDimensions] = None
    compatibility: Optional[List[str]] = None
    warranty: Optional[int] = Field(None, ge=0)
    installation_notes: Optional[str] = None
    reserved_until: Optional[datetime] = None
    sold_date: Optional[datetime] = None

class PartCreate(PartBase):
    id: Optional[str] = None
    condition: PartCondition = PartCondition.GOOD
    currency: str = "ZAR"
    status: PartStatus = PartStatus.AVAILABLE
    images: List[str] = Field(default_factory=list)
    is_listed_on_marketplace: bool = False

class PartUpdate(BaseModel):
    vehicle_id: Optional[str] = None
    category_id: Optional[str] = None
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    part_number: Optional[str] = None
    description: Optional[str] = Field(None, min_length=1)
    condition: Optional[PartCondition] = None
    price: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = None
    status: Optional[PartStatus] = None
    location: Optional[str] = None
    images: Optional[List[str]] = None
    is_listed_on_marketplace: Optional[bool] = None
    weight: Optional[float] = Field(None, ge=0)
    dimensions: Optional[PartDimensions] = None
    compatibility: Optional[List[str]] = None
    warranty: Optional[int] = Field(None, ge=0)
    installation_notes: Optional[str] = None
    reserved_until: Optional[datetime] = None
    sold_date: Optional[datetime] = None

    # these may be omitted but never cleared
    @field_validator(
        "vehicle_id", "category_id", "name", "description", "condition", "price",
        "currency", "status", "is_listed_on_marketplace",
    )
    @classmethod
    def not_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

class PartOut(PartBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    condition: PartCondition
    currency: str
    status: PartStatus
    images: Optional[List[str]] = None
    is_listed_on_marketplace: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class PartPageOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: List[PartOut]
    total_count: int = Field(..., alias="totalCount")
    page: int
    page_size: int = Field(..., alias="pageSize")
    total_pages: int = Field(..., alias="totalPages")
