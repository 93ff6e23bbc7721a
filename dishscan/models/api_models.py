"""
Pydantic models for the inference response schema and the HTTP API.

The inference payload models mirror the strict response schema sent to the
service: every dish field is required and partial records are rejected.
"""

from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Any, Dict, Generic, List, Optional, TypeVar
from datetime import datetime
import uuid

from .internal_models import Dish, InferredDish, SpiceLevel

T = TypeVar('T')

MAX_ALLERGENS = 5


class InferredDishPayload(BaseModel):
    """One dish record exactly as the inference service returns it"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    original_name: str = Field(alias="originalName")
    english_name: str = Field(alias="englishName")
    description: str
    tags: List[str]
    allergens: List[str]
    spice_level: SpiceLevel = Field(alias="spiceLevel")
    category: str
    bounding_box: List[float] = Field(alias="boundingBox")

    @field_validator('allergens')
    @classmethod
    def dedupe_allergens(cls, v):
        """
        Allergens behave as a set; keep first occurrence order.

        At most MAX_ALLERGENS are kept. An empty list is accepted as "none
        known" rather than failing the whole scan.
        """
        seen = []
        for allergen in v:
            if allergen not in seen:
                seen.append(allergen)
        return seen[:MAX_ALLERGENS]

    @field_validator('bounding_box')
    @classmethod
    def validate_bounding_box(cls, v):
        """Bounding box must be [ymin, xmin, ymax, xmax]"""
        if len(v) != 4:
            raise ValueError("boundingBox must contain exactly 4 coordinates [ymin, xmin, ymax, xmax]")
        return v

    def to_inferred_dish(self) -> InferredDish:
        return InferredDish(
            name=self.name,
            original_name=self.original_name,
            english_name=self.english_name,
            description=self.description,
            tags=tuple(self.tags),
            allergens=tuple(self.allergens),
            spice_level=self.spice_level,
            category=self.category,
            bounding_box=tuple(self.bounding_box),
        )


class InferencePayload(BaseModel):
    """Root object of the inference response"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    is_menu: Optional[bool] = Field(default=None, alias="isMenu")
    dishes: List[InferredDishPayload] = Field(default_factory=list)

    @field_validator('dishes', mode='before')
    @classmethod
    def default_dishes(cls, v):
        """A missing or null dish list degrades to no dishes"""
        return [] if v is None else v


class DishResponse(BaseModel):
    """Dish as returned by the scan endpoint"""
    id: str
    name: str
    original_name: str
    english_name: str
    description: str
    tags: List[str]
    allergens: List[str]
    spice_level: SpiceLevel
    category: str
    bounding_box: List[float] = Field(description="[ymin, xmin, ymax, xmax] on a 0-1000 scale")
    is_ocr_refined: bool = False
    is_menu: bool
    image: str

    @classmethod
    def from_dish(cls, dish: Dish) -> "DishResponse":
        return cls(
            id=dish.id,
            name=dish.name,
            original_name=dish.original_name,
            english_name=dish.english_name,
            description=dish.description,
            tags=list(dish.tags),
            allergens=list(dish.allergens),
            spice_level=dish.spice_level,
            category=dish.category,
            bounding_box=list(dish.bounding_box),
            is_ocr_refined=dish.is_ocr_refined,
            is_menu=dish.is_menu,
            image=dish.image,
        )


class ScanResponse(BaseModel):
    """Response model for the scan endpoint"""
    request_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    scan_id: str
    is_menu: bool
    dishes: List[DishResponse]
    total_items_found: int = Field(ge=0)
    processing_time_ms: int = Field(default=0, ge=0)
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class StandardErrorResponse(BaseModel):
    """Error body used inside the envelope"""
    error_code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)
    request_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class Envelope(BaseModel, Generic[T]):
    status: str
    data: Optional[T] = None
    error: Optional[str] = None
