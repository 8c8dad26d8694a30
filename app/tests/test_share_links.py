import io
import threading
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from database import Base
from models.file_model import DriveFile
from models.file_share_model import FileShare
from services.FileStorage import FileStorage
from services.ShareLinkManager import ShareLinkManager
from utils.errors import NotFoundError, ShareExpiredError, ShareLimitReachedError, ValidationError


@pytest.fixture
def shares(db_session, accessor):
    return ShareLinkManager(db_session, accessor)


@pytest.fixture
def stored_file(db_session, accessor):
    return FileStorage(db_session, accessor).upload(io.BytesIO(b"shared bytes"), "movie.mp4", "")


def test_issue_without_expiry(shares, stored_file, db_session):
    share = shares.issue(stored_file.path, expiry_hours=0)

    assert len(share.token) == 32
    assert share.expires_at is None
    assert share.max_downloads is None
    assert share.downloads == 0
    row = db_session.query(DriveFile).filter(DriveFile.path == stored_file.path).first()
    db_session.refresh(row)
    assert row.share_token == share.token
    assert row.share_expiry is None


def test_issue_with_expiry_is_in_the_future(shares, stored_file):
    before = datetime.now(timezone.utc)
    share = shares.issue(stored_file.path, expiry_hours=2)

    expires_at = share.expires_at.replace(tzinfo=timezone.utc) if share.expires_at.tzinfo is None else share.expires_at
    assert before + timedelta(hours=2) - timedelta(seconds=5) < expires_at
    assert expires_at < before + timedelta(hours=2, seconds=5)


def test_tokens_are_unique(shares, stored_file):
    tokens = {shares.issue(stored_file.path).token for _ in range(20)}
    assert len(tokens) == 20


@pytest.mark.parametrize("expiry_hours, max_downloads", [(-1, None), (0, 0), (1, -3)])
def test_issue_rejects_invalid_bounds(shares, stored_file, expiry_hours, max_downloads):
    with pytest.raises(ValidationError):
        shares.issue(stored_file.path, expiry_hours, max_downloads)


def test_issue_for_missing_file(shares):
    with pytest.raises(NotFoundError):
        shares.issue("missing.txt")


def test_inspect_never_consumes_downloads(shares, stored_file, db_session):
    share = shares.issue(stored_file.path, max_downloads=1)

    for _ in range(5):
        info = shares.inspect(share.token)
        assert info.name == stored_file.name
        assert info.size == len(b"shared bytes")
        assert info.mime_type == "video/mp4"
        assert info.downloads == 0

    redeemed = shares.redeem(share.token)
    assert redeemed.path.read_bytes() == b"shared bytes"


def test_redeem_enforces_limit(shares, stored_file, db_session):
    share = shares.issue(stored_file.path, max_downloads=2)

    shares.redeem(share.token)
    shares.redeem(share.token)
    with pytest.raises(ShareLimitReachedError):
        shares.redeem(share.token)

    db_session.refresh(share)
    assert share.downloads == 2
    row = db_session.query(DriveFile).filter(DriveFile.path == stored_file.path).first()
    db_session.refresh(row)
    assert row.downloads == 2


def test_elapsed_share_is_expired(shares, stored_file, db_session):
    share = shares.issue(stored_file.path, expiry_hours=1)
    share.expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)
    db_session.commit()

    with pytest.raises(ShareExpiredError):
        shares.inspect(share.token)
    with pytest.raises(ShareExpiredError):
        shares.redeem(share.token)

    db_session.refresh(share)
    assert share.downloads == 0


def test_share_created_with_past_expiry_is_expired(shares, stored_file, db_session):
    share = FileShare(
        token="past",
        file_path=stored_file.path,
        expires_at=datetime.now(timezone.utc) - timedelta(days=1),
        downloads=0,
    )
    db_session.add(share)
    db_session.commit()

    with pytest.raises(ShareExpiredError):
        shares.redeem("past")


def test_revoke_invalidates_link(shares, stored_file, db_session):
    share = shares.issue(stored_file.path)

    shares.revoke(share.token)

    with pytest.raises(NotFoundError):
        shares.inspect(share.token)
    with pytest.raises(NotFoundError):
        shares.redeem(share.token)
    with pytest.raises(NotFoundError):
        shares.revoke(share.token)
    row = db_session.query(DriveFile).filter(DriveFile.path == stored_file.path).first()
    db_session.refresh(row)
    assert row.share_token is None


def test_file_removed_out_of_band_fails_lazily(shares, stored_file, accessor):
    share = shares.issue(stored_file.path)
    (accessor.root / stored_file.path).unlink()

    with pytest.raises(NotFoundError):
        shares.inspect(share.token)
    with pytest.raises(NotFoundError):
        shares.redeem(share.token)


def test_purge_expired(shares, stored_file, db_session):
    expired = shares.issue(stored_file.path, expiry_hours=1)
    active = shares.issue(stored_file.path, expiry_hours=1)
    forever = shares.issue(stored_file.path)
    expired.expires_at = datetime.now(timezone.utc) - timedelta(hours=1)
    db_session.commit()

    assert shares.purge_expired() == 1

    remaining = {token for (token,) in db_session.query(FileShare.token)}
    assert remaining == {active.token, forever.token}


def test_concurrent_redeems_respect_limit(tmp_path, accessor):
    engine = create_engine(f"sqlite:///{tmp_path / 'shares.db'}",
                           connect_args={"check_same_thread": False, "timeout": 30})
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)

    setup = Session()
    stored = FileStorage(setup, accessor).upload(io.BytesIO(b"race"), "race.txt", "")
    token = ShareLinkManager(setup, accessor).issue(stored.path, max_downloads=2).token
    setup.close()

    barrier = threading.Barrier(3)
    outcomes = []
    lock = threading.Lock()

    def redeem():
        session = Session()
        try:
            barrier.wait()
            ShareLinkManager(session, accessor).redeem(token)
            outcome = "ok"
        except ShareLimitReachedError:
            outcome = "limit"
        finally:
            session.close()
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=redeem) for _ in range(3)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(outcomes) == ["limit", "ok", "ok"]
    check = Session()
    assert check.query(FileShare).filter(FileShare.token == token).one().downloads == 2
    check.close()
    engine.dispose()


def test_token_collision_is_retried(shares, stored_file, monkeypatch):
    tokens = iter(["a" * 32, "a" * 32, "b" * 32])
    monkeypatch.setattr("services.ShareLinkManager.generate_share_token", lambda: next(tokens))

    first = shares.issue(stored_file.path)
    second = shares.issue(stored_file.path)

    assert first.token == "a" * 32
    assert second.token == "b" * 32
    assert shares.inspect(second.token).name == stored_file.name


def test_purge_script_reports_count(shares, stored_file, db_session, monkeypatch, capsys):
    from scripts import purge_expired_shares

    share = shares.issue(stored_file.path, expiry_hours=1)
    share.expires_at = datetime.now(timezone.utc) - timedelta(minutes=5)
    db_session.commit()
    monkeypatch.setattr(purge_expired_shares, "SessionLocal", lambda: db_session)

    purge_expired_shares.main()

    assert "Purged 1 expired share links" in capsys.readouterr().out


def test_share_is_still_valid_at_the_exact_expiry_instant(shares, stored_file, db_session, monkeypatch):
    share = shares.issue(stored_file.path, expiry_hours=1)
    boundary = datetime(2030, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
    share.expires_at = boundary
    db_session.commit()
    monkeypatch.setattr("services.ShareLinkManager.utc_now", lambda: boundary)

    assert shares.inspect(share.token).downloads == 0
    redeemed = shares.redeem(share.token)

    assert redeemed.name == stored_file.name
    db_session.refresh(share)
    assert share.downloads == 1


def test_file_vanishing_during_inspect_is_not_found(shares, stored_file, accessor, monkeypatch):
    share = shares.issue(stored_file.path)
    monkeypatch.setattr(shares, "_shared_file", lambda found: accessor.root / "vanished.txt")

    with pytest.raises(NotFoundError):
        shares.inspect(share.token)
