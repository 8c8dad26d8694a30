from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class ShareCreate(BaseModel):
    expiry_hours: int = Field(0, example=24, description="Hours until the link expires, 0 means no expiry")
    max_downloads: Optional[int] = Field(None, example=5, description="Maximum number of downloads, unlimited when omitted")


class ShareLinkResponse(BaseModel):
    file_name: str = Field(..., example="docs/report_1a2b3c4d.pdf")
    share_token: str = Field(..., example="9f86d081884c7d659a2feaa0c55ad015")
    share_url: str = Field(..., example="/share/9f86d081884c7d659a2feaa0c55ad015/download")
    expires_at: Optional[datetime] = None
    max_downloads: Optional[int] = None


class ShareInfo(BaseModel):
    name: str = Field(..., example="report_1a2b3c4d.pdf", description="Name of the shared file")
    size: int = Field(..., example=1536, description="File size in bytes")
    mime_type: str = Field(..., example="application/pdf")
    downloads: int = Field(..., example=1, description="Downloads so far")
    max_downloads: Optional[int] = None
    expires_at: Optional[datetime] = None
