from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class OtpIssueResponse(BaseModel):
    product_id: str
    # Returned directly while payment is acknowledged out of band (EXPOSE_OTP_CODE)
    code: Optional[str] = None
    remaining_seconds: int
    expires_at: datetime
    message: str = "The OTP is ready for confirmation."


class OtpDisplayResponse(BaseModel):
    code: str
    remaining_seconds: int
