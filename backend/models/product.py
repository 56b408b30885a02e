from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from config.constants import DEFAULT_CURRENCY


class Category(str, Enum):
    PLASTICS = "plastics"
    METALS = "metals"
    PAPER = "paper"
    ELECTRONICS = "electronics"
    TEXTILES = "textiles"
    GLASS = "glass"
    CHEMICALS = "chemicals"
    CONSTRUCTION = "construction"
    AUTOMOTIVE = "automotive"
    OTHER = "other"


class PricingUnit(str, Enum):
    KG = "kg"
    TON = "ton"
    PIECE = "piece"
    METER = "meter"
    LITER = "liter"
    CUBIC_METER = "cubic_meter"
    SQUARE_METER = "square_meter"


class CarbonFootprintUnit(str, Enum):
    KG_CO2_PER_TON = "kg_co2_per_ton"
    KG_CO2_PER_UNIT = "kg_co2_per_unit"
    PERCENTAGE_REDUCTION = "percentage_reduction"


class SustainabilityTag(str, Enum):
    RECYCLED = "recycled"
    BIODEGRADABLE = "biodegradable"
    CARBON_NEUTRAL = "carbon_neutral"
    ENERGY_EFFICIENT = "energy_efficient"
    WATER_EFFICIENT = "water_efficient"
    RENEWABLE = "renewable"
    ECO_FRIENDLY = "eco_friendly"


class ProductStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    INACTIVE = "inactive"


# =========================
# NESTED
# =========================

class _Schema(BaseModel):
    model_config = ConfigDict(use_enum_values=True, extra="forbid")


class CarbonFootprint(_Schema):
    value: Optional[float] = None
    unit: Optional[CarbonFootprintUnit] = None
    description: Optional[str] = None


class SourceLocation(_Schema):
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None


class PriceRange(_Schema):
    min: Optional[float] = Field(None, gt=0)
    max: Optional[float] = Field(None, gt=0)

    @model_validator(mode="after")
    def check_bounds(self):
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError("price range min cannot exceed max")
        return self


class Pricing(_Schema):
    base_price: float = Field(..., gt=0)
    price_range: Optional[PriceRange] = None
    unit: PricingUnit
    currency: str = DEFAULT_CURRENCY


class Moq(_Schema):
    quantity: float = Field(..., ge=1)
    unit: str = Field(..., min_length=1)


class ServiceableGeography(_Schema):
    states: List[str] = []
    cities: List[str] = []
    nationwide: bool = False


class ProductCertification(_Schema):
    name: str
    issuing_body: Optional[str] = None
    certificate_url: Optional[str] = None
    valid_until: Optional[datetime] = None


# =========================
# PAYLOADS
# =========================

class ProductCreate(_Schema):
    product_name: str = Field(..., min_length=1)
    product_type: str = Field(..., min_length=1)
    category: Category
    specifications: Dict[str, str] = {}
    features: List[str] = []
    benefits: List[str] = []
    carbon_footprint: Optional[CarbonFootprint] = None
    source_locations: List[SourceLocation] = []
    pricing: Pricing
    moq: Moq
    serviceable_geography: ServiceableGeography = ServiceableGeography()
    certifications: List[ProductCertification] = []
    sustainability_tags: List[SustainabilityTag] = []
    additional_info: Optional[str] = ""
    status: ProductStatus = ProductStatus.ACTIVE


NON_NULLABLE_FIELDS = (
    "product_name",
    "product_type",
    "category",
    "pricing",
    "moq",
    "status",
)


class ProductUpdate(_Schema):
    """Partial update: only fields the client sent are merged."""

    product_name: Optional[str] = Field(None, min_length=1)
    product_type: Optional[str] = Field(None, min_length=1)
    category: Optional[Category] = None
    specifications: Optional[Dict[str, str]] = None
    features: Optional[List[str]] = None
    benefits: Optional[List[str]] = None
    carbon_footprint: Optional[CarbonFootprint] = None
    source_locations: Optional[List[SourceLocation]] = None
    pricing: Optional[Pricing] = None
    moq: Optional[Moq] = None
    serviceable_geography: Optional[ServiceableGeography] = None
    certifications: Optional[List[ProductCertification]] = None
    sustainability_tags: Optional[List[SustainabilityTag]] = None
    additional_info: Optional[str] = None
    status: Optional[ProductStatus] = None

    @model_validator(mode="after")
    def reject_null_required(self):
        nulls = [f for f in NON_NULLABLE_FIELDS if f in self.model_fields_set and getattr(self, f) is None]
        if nulls:
            raise ValueError(f"fields cannot be null: {', '.join(nulls)}")
        return self
