from fastapi import APIRouter, Depends
from starlette.responses import FileResponse

from dependencies import get_current_user, get_share_manager
from schemas.file_schema import MessageResponse
from schemas.share_schema import ShareInfo
from services.ShareLinkManager import ShareLinkManager

router = APIRouter()


@router.get("/{token}", response_model=ShareInfo,
            summary="Information about a shared file",
            description="""
                            Public endpoint used by preview pages. Reading it never consumes a download.
                        """,
            responses={
                404: {"description": "Shared file not found"},
                410: {"description": "Share link has expired"},
            })
def shared_file_info(token: str, shares: ShareLinkManager = Depends(get_share_manager)):
    return shares.inspect(token)


@router.get("/{token}/download",
            summary="Download a shared file",
            description="""
                            Public endpoint. Each successful call consumes one download of the link.
                        """,
            responses={
                403: {"description": "Download limit reached"},
                404: {"description": "Shared file not found"},
                410: {"description": "Share link has expired"},
                200: {"description": "File content as an attachment"},
            })
def download_shared_file(token: str, shares: ShareLinkManager = Depends(get_share_manager)):
    redeemed = shares.redeem(token)
    return FileResponse(path=redeemed.path, filename=redeemed.name, media_type=redeemed.mime_type)


@router.delete("/{token}", response_model=MessageResponse,
               summary="Revoke a share link",
               responses={
                   401: {"description": "Not authenticated"},
                   404: {"description": "Shared file not found"},
               })
def revoke_share_link(token: str,
                      user: str = Depends(get_current_user),
                      shares: ShareLinkManager = Depends(get_share_manager)):
    shares.revoke(token)
    return {"detail": "Share link revoked"}
