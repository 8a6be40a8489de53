from pydantic import BaseModel, Field


class Exercise(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    reps: str | None = Field(None, max_length=40)
    sets: str | None = Field(None, max_length=40)
    day: str | None = Field(None, max_length=20)  # Monday, etc.
    notes: str | None = None


class Meal(BaseModel):
    time: str = Field(..., min_length=1, max_length=40)  # Breakfast, Lunch
    food_items: list[str] = Field(default_factory=list)
    notes: str | None = None


class WorkoutPlanAssign(BaseModel):
    member_id: int = Field(..., gt=0)
    exercises: list[Exercise]


class DietPlanAssign(BaseModel):
    member_id: int = Field(..., gt=0)
    meals: list[Meal]


class WorkoutPlanUpdate(BaseModel):
    exercises: list[Exercise] | None = None


class DietPlanUpdate(BaseModel):
    meals: list[Meal] | None = None
