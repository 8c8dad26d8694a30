from pydantic import BaseModel, Field
from typing import List, Optional

from schemas.file_schema import FolderEntry


class FolderCreate(BaseModel):
    name: str = Field(..., example="documents", description="Name of the new folder")
    parent_path: Optional[str] = Field("", example="projects", description="Materialized path of the parent, empty for the root")


class BreadcrumbResponse(BaseModel):
    path: List[FolderEntry]
