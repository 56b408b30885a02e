from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.seller import Address, GSTIN_PATTERN


class ProjectType(str, Enum):
    CONSTRUCTION = "Construction"
    MANUFACTURING = "Manufacturing"
    INFRASTRUCTURE = "Infrastructure"
    RENEWABLE_ENERGY = "Renewable Energy"
    OTHER = "Other"


class _Schema(BaseModel):
    model_config = ConfigDict(use_enum_values=True, extra="forbid")


class BuyerLocation(_Schema):
    address: Address
    # [longitude, latitude]
    coordinates: List[float] = Field(default=[0, 0], min_length=2, max_length=2)


class Project(_Schema):
    name: str = Field(..., min_length=1)
    type: ProjectType = ProjectType.OTHER
    location: Optional[str] = ""
    sustainability_goals: List[str] = []
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    description: Optional[str] = ""


class BuyerProfileIn(_Schema):
    name: str = Field(..., min_length=1)
    location: BuyerLocation
    gstin: str = Field(..., pattern=GSTIN_PATTERN)
    projects: List[Project] = Field(..., min_length=1)
