"""分享文件记录 CRUD 测试：唯一索引、受限更新、原子计数与分页筛选。"""

from datetime import datetime, timedelta, timezone

import pytest

from app.packages.fileshare.core.enums import SortOrderEnum
from app.packages.fileshare.core.exceptions import DuplicateShareIdError
from app.packages.fileshare.crud.file_record import FileFilters, FilePage, FileSort, file_record_crud

NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def test_insert_rejects_duplicate_share_id(db_session_fixture, make_record):
    existing = make_record(share_id="DupShareId01")

    with pytest.raises(DuplicateShareIdError):
        make_record(share_id="DupShareId01")

    # 回滚后会话仍可继续使用
    assert file_record_crud.get_by_share_id(db_session_fixture, "DupShareId01").id == existing.id


def test_lookup_by_id_and_share_id(db_session_fixture, make_record):
    record = make_record()
    assert file_record_crud.get(db_session_fixture, record.id).share_id == record.share_id
    assert file_record_crud.get_by_share_id(db_session_fixture, record.share_id).id == record.id
    assert file_record_crud.get_by_share_id(db_session_fixture, "missing00000") is None
    assert file_record_crud.share_id_exists(db_session_fixture, record.share_id)
    assert not file_record_crud.share_id_exists(db_session_fixture, None)


def test_timestamps_are_utc_aware(make_record):
    record = make_record(expires_at=NOW + timedelta(days=3))
    assert record.created_at.tzinfo is not None
    assert record.expires_at == NOW + timedelta(days=3)


def test_update_fields_only_accepts_mutable_columns(db_session_fixture, make_record):
    record = make_record()

    with pytest.raises(ValueError):
        file_record_crud.update_fields(db_session_fixture, record, {"share_id": "Hijacked0001"})
    with pytest.raises(ValueError):
        file_record_crud.update_fields(db_session_fixture, record, {"download_count": 99})

    updated = file_record_crud.update_fields(db_session_fixture, record, {"original_name": "renamed.png"})
    assert updated.original_name == "renamed.png"


def test_increment_download_count_is_a_single_update(db_session_fixture, make_record):
    record = make_record()
    assert file_record_crud.increment_download_count(db_session_fixture, record.id) == 1
    assert file_record_crud.increment_download_count(db_session_fixture, record.id) == 1
    db_session_fixture.refresh(record)
    assert record.download_count == 2
    assert file_record_crud.increment_download_count(db_session_fixture, record.id + 1000) == 0


@pytest.mark.parametrize(
    ("offset_seconds", "included"),
    [(-1, True), (0, False), (1, False)],
)
def test_not_expired_filter_boundary(db_session_fixture, make_record, offset_seconds, included):
    expiry = NOW + timedelta(days=1)
    make_record(expires_at=expiry)
    make_record(expires_at=None)

    items, total = file_record_crud.list_with_filters(
        db_session_fixture,
        filters=FileFilters(not_expired_at=expiry + timedelta(seconds=offset_seconds)),
        sort=FileSort(),
        page=FilePage(),
    )
    assert total == (2 if included else 1)
    assert any(item.expires_at is None for item in items)


def test_page_clamp():
    assert FilePage(page=1, per_page=500).clamped(100).per_page == 100
    assert FilePage(page=0, per_page=0).clamped(100) == FilePage(page=1, per_page=1)
    assert FilePage(page=3, per_page=15).offset == 30


def test_second_page_offset(db_session_fixture, make_record):
    for index in range(20):
        make_record(size_bytes=index)

    items, total = file_record_crud.list_with_filters(
        db_session_fixture,
        filters=FileFilters(),
        sort=FileSort(field="size_bytes", order=SortOrderEnum.ASC),
        page=FilePage(page=2, per_page=15),
    )
    assert total == 20
    assert [item.size_bytes for item in items] == [15, 16, 17, 18, 19]


def test_filters_combine(db_session_fixture, make_record):
    make_record(owner_id="alice", original_name="Beach Sunset.png")
    make_record(owner_id="alice", original_name="beach-video.mp4", mime_type="video/mp4", type="video")
    make_record(owner_id="alice", original_name="mountain.png", is_public=False)
    make_record(owner_id="bob", original_name="beach.png")

    items, total = file_record_crud.list_with_filters(
        db_session_fixture,
        filters=FileFilters(owner_id="alice", search="BEACH"),
        sort=FileSort(field="original_name", order=SortOrderEnum.ASC),
        page=FilePage(),
    )
    assert total == 2
    assert [item.original_name for item in items] == ["Beach Sunset.png", "beach-video.mp4"]

    items, total = file_record_crud.list_with_filters(
        db_session_fixture,
        filters=FileFilters(owner_id="alice", type="image", is_public=False),
        sort=FileSort(),
        page=FilePage(),
    )
    assert total == 1
    assert items[0].original_name == "mountain.png"


def test_unknown_sort_field_is_rejected(db_session_fixture):
    with pytest.raises(ValueError):
        file_record_crud.list_with_filters(
            db_session_fixture,
            filters=FileFilters(),
            sort=FileSort(field="storage_key"),
            page=FilePage(),
        )
