import logging
import os

from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from routers import file, folder, share
from models import file_model, file_share_model, folder_model
from database import Base, db
from utils.errors import DriveError, FileSystemError

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=db)

app = FastAPI()

app.include_router(file.router, prefix="/files", tags=["Files"])
app.include_router(folder.router, prefix="/folders", tags=["Folders"])
app.include_router(share.router, prefix="/share", tags=["Share"])


@app.exception_handler(DriveError)
async def drive_error_handler(request: Request, error: DriveError):
    if isinstance(error, FileSystemError):
        logger.error("Filesystem failure on %s %s at %s: %s",
                     request.method, request.url.path, error.path, error.cause)
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.get("/")
def read_root():
    return "Server is running"
