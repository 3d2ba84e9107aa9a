"""
Database Schemas for the gym member roster

Each Pydantic model with a ``Collection:`` note maps to a MongoDB collection.
Documents are validated here before every insert or replace; the allowed
membership durations are passed in through the validation context.
"""
from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from config import STANDARD_DURATIONS

MembershipStatus = Literal['Active', 'Expired', 'Unknown']

PHONE_RE = re.compile(r'^\d{10}$')

# Fields a partial update may never erase
PROTECTED_FIELDS = (
    'name',
    'address',
    'dob',
    'healthConditions',
    'paidFee',
    'pendingFee',
    'workoutPlan',
    'mobileNumber',
    'emergencyContactNumber',
)


def _numbers_to_text(value: Any) -> Any:
    # form numbers come back from the normalizer as int/float
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else str(value)
    return value


class WeightSnapshot(BaseModel):
    date: datetime
    weight: float


class Members(BaseModel):
    """
    Gym member profile
    Collection: "members"
    """
    model_config = ConfigDict(extra='ignore')

    name: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    dob: datetime
    healthConditions: str = ''
    membershipDuration: int
    membershipStartDate: datetime
    membershipEndDate: datetime
    paidFee: float
    pendingFee: float = 0
    workoutPlan: str = ''
    bodyWeight: Optional[float] = None
    bodyMeasurements: Dict[str, float] = Field(default_factory=dict)
    previousWeights: List[WeightSnapshot] = Field(default_factory=list)
    mobileNumber: str
    emergencyContactNumber: str
    photo: Optional[str] = None
    createdAt: datetime

    @field_validator('name', 'address', 'healthConditions', 'workoutPlan', 'photo', mode='before')
    @classmethod
    def text_fields(cls, v):
        return _numbers_to_text(v)

    @field_validator('mobileNumber', 'emergencyContactNumber', mode='before')
    @classmethod
    def phone_number(cls, v):
        v = _numbers_to_text(v)
        if isinstance(v, str):
            v = v.strip()
            if not PHONE_RE.match(v):
                raise ValueError('must be a 10 digit number')
        return v

    @field_validator('membershipDuration', mode='before')
    @classmethod
    def whole_months(cls, v):
        if isinstance(v, float) and v.is_integer():
            return int(v)
        return v

    @field_validator('membershipDuration')
    @classmethod
    def allowed_duration(cls, v: int, info: ValidationInfo) -> int:
        allowed = STANDARD_DURATIONS
        if info.context and info.context.get('allowed_durations'):
            allowed = tuple(info.context['allowed_durations'])
        if v not in allowed:
            raise ValueError(f"must be one of {', '.join(str(d) for d in allowed)}")
        return v


class Member(BaseModel):
    """Member as returned to clients, with the derived membership status."""
    model_config = ConfigDict(extra='ignore')

    id: str
    name: Optional[str] = None
    address: Optional[str] = None
    dob: Optional[datetime] = None
    healthConditions: Optional[str] = ''
    membershipDuration: Optional[int] = None
    membershipStartDate: Optional[datetime] = None
    membershipEndDate: Optional[datetime] = None
    paidFee: Optional[float] = None
    pendingFee: Optional[float] = 0
    workoutPlan: Optional[str] = ''
    bodyWeight: Optional[float] = None
    bodyMeasurements: Dict[str, float] = Field(default_factory=dict)
    previousWeights: List[WeightSnapshot] = Field(default_factory=list)
    mobileNumber: Optional[str] = None
    emergencyContactNumber: Optional[str] = None
    photo: Optional[str] = None
    createdAt: Optional[datetime] = None
    membershipStatus: MembershipStatus = 'Unknown'


class DashboardStats(BaseModel):
    totalMembers: int
    activeMembers: int
    expiredMembers: int
    unknownMembers: int
    expiringSoon: int
    totalPaidFees: float
    totalPendingFees: float
    membersWithPendingFees: int


class Message(BaseModel):
    message: str
