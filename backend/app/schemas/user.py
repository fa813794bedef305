"""
# `app/schemas/user.py` - Profile and user lookup schemas

## `UserProfile`
The companion document kept in `users/{uid}` next to the Firebase account.
| Field               | Type                 |
|---------------------|----------------------|
| id                  | `str` (Firebase UID) |
| displayName         | `str` / `null`       |
| email               | `str` / `null`       |
| photoURL            | `str` / `null`       |
| phone               | `str` / `null`       |
| emergencyContact    | `EmergencyContact`   |
| dietaryRequirements | `str` / `null`       |
| medicalNotes        | `str` / `null`       |

## `UserLookupOut`
One entry per email asked for; `userExists=false` entries carry only the email.
"""
from typing import Optional

from pydantic import BaseModel, Field


class EmergencyContact(BaseModel):
    name: Optional[str] = Field(None, description="Contact name")
    phone: Optional[str] = Field(None, description="Contact phone")


class UserProfile(BaseModel):
    """Schema for profile output."""
    id: str = Field(..., description="User unique ID (UID from Firebase)")
    displayName: Optional[str] = None
    email: Optional[str] = None
    photoURL: Optional[str] = None
    phone: Optional[str] = None
    emergencyContact: EmergencyContact = Field(default_factory=EmergencyContact)
    dietaryRequirements: Optional[str] = None
    medicalNotes: Optional[str] = None


class UserLookupOut(BaseModel):
    userExists: bool
    email: str
    displayName: Optional[str] = None
    photoURL: Optional[str] = None
