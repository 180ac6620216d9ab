from __future__ import annotations
from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class Category(str, Enum):
    PRODUCE = "Produce"
    MEAT = "Meat"
    GROCERY = "Grocery"
    PERSONAL = "Personal"


class ShoppingEntry(BaseModel):
    # Aliases match the stored row shape: {id, name, completed, day, category}
    model_config = ConfigDict(populate_by_name=True)

    identity: str = Field(alias="id")
    label: str = Field(alias="name")
    completed: bool = False
    source_day: str = Field(alias="day")
    category: Category = Category.GROCERY

    def stored(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class PlanSpan(BaseModel):
    text: str
    start: int
    end: int
    is_day: bool


class DayBlock(BaseModel):
    index: int
    text: str
    heading: str
    day_number: Optional[int] = None
    start: int
    end: int


class DayRange(BaseModel):
    start: int
    end: int


class PlanRequest(BaseModel):
    days: int = Field(ge=1)
    family_size: int = Field(default=4, ge=1)
    daily_budget: int = Field(default=500, ge=0)
    cuisine: str = "Indian Desi"
    age_groups: str = ""
    equipment: str = ""
    food_items: str = ""


class StoredPlan(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    owner_id: str = Field(alias="id")
    full_plan: str = ""
    plan_days: int = 0
    updated_at: Optional[datetime] = None

    @field_validator("full_plan", mode="before")
    @classmethod
    def text_or_empty(cls, v):
        return v if isinstance(v, str) else ""

    @field_validator("plan_days", mode="before")
    @classmethod
    def days_or_zero(cls, v):
        try:
            return max(int(v), 0)
        except (TypeError, ValueError):
            return 0


class UserProfile(BaseModel):
    id: str
    email: str
    display_name: Optional[str] = None


class AuthSession(BaseModel):
    user: UserProfile
    access_token: str = ""
    refresh_token: str = ""
    is_demo: bool = False
