from fastapi import APIRouter, Depends, status

from dependencies import get_current_user, get_folder_manager
from schemas.file_schema import FolderEntry, MessageResponse
from schemas.folder_schema import BreadcrumbResponse, FolderCreate
from services.FolderHierarchyManager import FolderHierarchyManager

router = APIRouter()


@router.post("", response_model=FolderEntry, status_code=status.HTTP_201_CREATED,
             summary="Create a folder",
             description="""
                            Creates a folder inside the given parent folder, both on disk and in the folder tree.
                            Creating a folder that already exists returns the existing one.
                          """,
             responses={
                 400: {"description": "Invalid folder name or path"},
                 401: {"description": "Not authenticated"},
                 404: {"description": "Parent folder not found"},
             })
def create_folder(request: FolderCreate,
                  user: str = Depends(get_current_user),
                  folders: FolderHierarchyManager = Depends(get_folder_manager)):
    return folders.create_folder(request.name, request.parent_path)


@router.get("/breadcrumb/{folder_path:path}", response_model=BreadcrumbResponse,
            summary="Breadcrumb of a folder",
            description="""
                            Ordered chain of folders from the root down to the requested folder.
                        """,
            responses={
                401: {"description": "Not authenticated"},
                404: {"description": "Folder not found"},
                409: {"description": "Folder hierarchy is corrupted"},
            })
def folder_breadcrumb(folder_path: str,
                      user: str = Depends(get_current_user),
                      folders: FolderHierarchyManager = Depends(get_folder_manager)):
    return BreadcrumbResponse(path=folders.breadcrumb(folder_path))


@router.delete("/{folder_path:path}", response_model=MessageResponse,
               summary="Delete a folder and everything inside it",
               description="""
                             Removes every descendant folder and file, in metadata and on disk. This step is irreversible.
                           """,
               responses={
                   400: {"description": "The root folder cannot be deleted"},
                   401: {"description": "Not authenticated"},
                   404: {"description": "Folder not found"},
                   409: {"description": "Folder hierarchy is corrupted"},
               })
def delete_folder(folder_path: str,
                  user: str = Depends(get_current_user),
                  folders: FolderHierarchyManager = Depends(get_folder_manager)):
    removed = folders.delete_folder(folder_path)
    return {"detail": f"Folder deleted ({removed} folders removed)"}
