from pydantic import BaseModel, Field
from datetime import datetime
from typing import List


class FileEntry(BaseModel):
    name: str = Field(..., example="report_1a2b3c4d.pdf", description="Name of the file as stored on disk")
    path: str = Field(..., example="documents/report_1a2b3c4d.pdf", description="Path relative to the storage root")
    size: int = Field(..., example=1536, description="File size in bytes")
    mime_type: str = Field(..., example="application/pdf", description="MIME type inferred from the extension")
    extension: str = Field(..., example=".pdf", description="File extension including the dot")
    created_at: datetime = Field(..., example="2025-09-03T12:34:56Z", description="Last modification time on disk")
    icon: str = Field(..., example="pdf", description="Icon class derived from the MIME type")
    formatted_size: str = Field(..., example="1.5 KB", description="Human-readable size in binary units")


class FolderEntry(BaseModel):
    name: str = Field(..., example="documents", description="Folder name")
    path: str = Field(..., example="projects/documents", description="Materialized path relative to the storage root")
    created_at: datetime = Field(..., example="2025-09-03T12:34:56Z", description="Last modification time")
    size: int = Field(0, example=0, description="Folders carry no meaningful size")


class FileListResponse(BaseModel):
    files: List[FileEntry]
    folders: List[FolderEntry]
    total_files: int = Field(..., example=3, description="Number of files in the listed folder")
    total_size: int = Field(..., example=4005, description="Sum of file sizes in bytes")
    folder_path: str = Field(..., example="projects", description="Listed folder, empty for the root")


class BulkDeleteRequest(BaseModel):
    identifiers: List[str] = Field(default_factory=list, example=["docs/a_1a2b3c4d.txt"],
                                   description="Relative paths of the files to delete")


class BulkDeleteFailure(BaseModel):
    identifier: str
    reason: str


class BulkDeleteResult(BaseModel):
    deleted_count: int = Field(..., example=2, description="Files removed or already absent")
    failures: List[BulkDeleteFailure] = Field(default_factory=list)


class MessageResponse(BaseModel):
    detail: str


class RenameRequest(BaseModel):
    name: str = Field(..., example="quarterly report", description="New name, the current extension is kept")
