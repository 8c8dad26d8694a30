import os

from database import SessionLocal
from models import file_model, file_share_model, folder_model
from services.SafeFileAccessor import SafeFileAccessor
from services.ShareLinkManager import ShareLinkManager


def main():
    session = SessionLocal()
    try:
        accessor = SafeFileAccessor(os.getenv("STORAGE_DIR", "./storage"))
        removed = ShareLinkManager(session, accessor).purge_expired()
        print(f"Purged {removed} expired share links")
    finally:
        session.close()


if __name__ == "__main__":
    main()
