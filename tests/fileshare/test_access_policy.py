"""访问策略单元测试：过期、公开读取与所有者判定。"""

from datetime import datetime, timedelta, timezone

from app.packages.fileshare.models.file_record import FileRecord
from app.packages.fileshare.services import access_policy
from app.packages.fileshare.services.access_policy import Requester

NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def _record(**overrides) -> FileRecord:
    fields = {"is_public": True, "owner_id": "user-a", "expires_at": None}
    fields.update(overrides)
    return FileRecord(**fields)


def test_is_expired_boundary_is_inclusive():
    record = _record(expires_at=NOW)
    assert access_policy.is_expired(record, NOW) is True
    assert access_policy.is_expired(record, NOW - timedelta(seconds=1)) is False
    assert access_policy.is_expired(_record(), NOW) is False


def test_is_expired_is_monotonic_in_time():
    record = _record(expires_at=NOW)
    assert access_policy.is_expired(record, NOW)
    for offset in (1, 60, 3600, 86400 * 400):
        assert access_policy.is_expired(record, NOW + timedelta(seconds=offset))


def test_naive_expiry_is_treated_as_utc():
    record = _record(expires_at=NOW.replace(tzinfo=None))
    assert access_policy.is_expired(record, NOW)
    assert not access_policy.is_expired(record, NOW - timedelta(seconds=1))


def test_public_unexpired_file_is_readable_by_anyone():
    record = _record(expires_at=NOW + timedelta(days=1))
    assert access_policy.can_read(record, None, NOW)
    assert access_policy.can_read(record, Requester("someone-else"), NOW)
    assert access_policy.can_read(record, Requester("user-a"), NOW)


def test_private_file_is_readable_by_owner_only():
    record = _record(is_public=False)
    assert access_policy.can_read(record, Requester("user-a"), NOW)
    assert not access_policy.can_read(record, Requester("user-b"), NOW)
    assert not access_policy.can_read(record, None, NOW)


def test_expired_file_is_unreadable_even_for_owner():
    record = _record(expires_at=NOW - timedelta(minutes=1))
    assert not access_policy.can_read(record, Requester("user-a"), NOW)
    assert not access_policy.can_read(record, None, NOW)


def test_can_mutate_requires_exact_owner():
    record = _record()
    assert access_policy.can_mutate(record, Requester("user-a"))
    assert not access_policy.can_mutate(record, Requester("user-A"))
    assert not access_policy.can_mutate(record, None)


def test_anonymous_records_cannot_be_mutated():
    record = _record(owner_id=None)
    assert not access_policy.can_mutate(record, None)
    assert not access_policy.can_mutate(record, Requester("user-a"))
    assert not access_policy.is_owner(record, Requester("user-a"))
