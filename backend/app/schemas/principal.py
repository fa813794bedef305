"""
app/schemas/principal.py
The authenticated caller, as decoded from a Firebase ID token.
"""
from typing import Optional
from pydantic import BaseModel, Field


class Principal(BaseModel):
    uid: str = Field(..., description="Firebase UID")
    email: Optional[str] = Field(None, description="Email (if any)")
    email_verified: bool = Field(False, description="Whether the email has been verified")
    display_name: Optional[str] = Field(None, description="Display name (if any)")
    photo_url: Optional[str] = Field(None, description="Avatar URL (if any)")

    @property
    def normalized_email(self) -> Optional[str]:
        return self.email.strip().lower() if self.email else None
