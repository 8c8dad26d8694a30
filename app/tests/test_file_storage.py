import io

import pytest

from models.file_model import DriveFile
from services.FileStorage import FileStorage
from services.FolderHierarchyManager import FolderHierarchyManager
from services.ShareLinkManager import ShareLinkManager
from utils.errors import ConflictError, NotFoundError, PathTraversalError, ValidationError


@pytest.fixture
def storage(db_session, accessor):
    return FileStorage(db_session, accessor)


def upload(storage, name, folder_path=""):
    return storage.upload(io.BytesIO(b"content"), name, folder_path)


def test_rename_keeps_extension(storage, db_session, accessor):
    stored = upload(storage, "report.pdf")

    renamed = storage.rename(stored.path, "Q1 summary.txt")

    assert renamed.name == "Q1_summary.pdf"
    assert renamed.path == "Q1_summary.pdf"
    assert renamed.mime_type == "application/pdf"
    assert (accessor.root / "Q1_summary.pdf").read_bytes() == b"content"
    assert not (accessor.root / stored.path).exists()
    row = db_session.query(DriveFile).one()
    db_session.refresh(row)
    assert (row.name, row.path) == ("Q1_summary.pdf", "Q1_summary.pdf")


def test_rename_stays_in_folder(storage, db_session, accessor):
    FolderHierarchyManager(db_session, accessor).create_folder("docs", "")
    stored = upload(storage, "draft.md", "docs")

    renamed = storage.rename(stored.path, "final")

    assert renamed.path == "docs/final.md"
    assert (accessor.root / "docs" / "final.md").is_file()


def test_share_links_follow_renamed_file(storage, db_session, accessor):
    stored = upload(storage, "song.mp3")
    shares = ShareLinkManager(db_session, accessor)
    token = shares.issue(stored.path).token

    storage.rename(stored.path, "anthem")

    assert shares.inspect(token).name == "anthem.mp3"
    assert shares.redeem(token).path.read_bytes() == b"content"


def test_rename_refuses_existing_name(storage, accessor):
    first = upload(storage, "a.txt")
    second = upload(storage, "b.txt")

    with pytest.raises(ConflictError):
        storage.rename(first.path, second.name[:-len(".txt")])

    assert (accessor.root / first.path).is_file()
    assert (accessor.root / second.path).read_bytes() == b"content"


def test_rename_to_same_name_is_a_no_op(storage):
    stored = upload(storage, "same.txt")

    assert storage.rename(stored.path, stored.name).path == stored.path


@pytest.mark.parametrize("new_name", ["../escape", "..", "sub/dir", "..\\..\\evil", "bad\x00name"])
def test_rename_cannot_leave_folder(storage, accessor, new_name):
    stored = upload(storage, "a.txt")

    with pytest.raises(PathTraversalError):
        storage.rename(stored.path, new_name)

    assert (accessor.root / stored.path).is_file()
    assert not (accessor.root.parent / "escape.txt").exists()


def test_rename_requires_a_name(storage):
    stored = upload(storage, "a.txt")

    with pytest.raises(ValidationError):
        storage.rename(stored.path, "   ")


def test_rename_missing_file(storage):
    with pytest.raises(NotFoundError):
        storage.rename("ghost.txt", "other")
