from typing import Literal
from pydantic import BaseModel, Field


class UserCreate(BaseModel):
    email: str = Field(..., min_length=3, max_length=254)
    name: str | None = None
    starting_weight: float = Field(82.0, ge=30, le=300)
    target_weight: float = Field(75.0, ge=30, le=300)


class ExerciseResult(BaseModel):
    exercise_id: int
    weight_kg: float = Field(..., ge=0)
    sets_completed: int = Field(..., ge=0, le=20)
    difficulty_feedback: Literal["too_light", "just_right", "too_heavy"]
    enjoyed: bool = True


class WorkoutComplete(BaseModel):
    workout_type: Literal["A", "B", "C"]
    is_express: bool = False
    exercises: list[ExerciseResult] = []


class WeightLogIn(BaseModel):
    weight_kg: float = Field(..., ge=30, le=200)


class WaistLogIn(BaseModel):
    waist_cm: float = Field(..., ge=50, le=200)


class InjuryIn(BaseModel):
    body_area: Literal["shoulder", "back", "knee", "wrist", "elbow", "hip", "neck", "other"]
    severity: Literal["mild", "moderate", "bad"]
    notes: str | None = Field(None, max_length=500)


class HeartRateSample(BaseModel):
    time: str = Field(..., pattern=r"^([01]\d|2[0-3]):[0-5]\d(:[0-5]\d)?$")
    value: float


class VerificationIn(BaseModel):
    samples: list[HeartRateSample]
    resting_hr: int | None = Field(None, ge=30, le=120)


class PreferenceIn(BaseModel):
    blacklisted: bool
