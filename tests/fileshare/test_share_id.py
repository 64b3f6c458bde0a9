"""分享 ID 生成器测试。"""

import string

from app.packages.fileshare.services.share_id import ShareIdGenerator

ALPHABET = set(string.ascii_letters + string.digits)


class _MemoryStore:
    def __init__(self, existing=()):
        self.seen = set(existing)
        self.checks = 0

    def share_id_exists(self, db, share_id):
        self.checks += 1
        return share_id in self.seen


def test_generated_ids_are_unique_over_ten_thousand_generations():
    store = _MemoryStore()
    generator = ShareIdGenerator(store=store)
    for _ in range(10_000):
        share_id = generator.generate(db=None)
        assert share_id not in store.seen
        assert len(share_id) == 12
        assert set(share_id) <= ALPHABET
        store.seen.add(share_id)
    assert len(store.seen) == 10_000


def test_length_never_drops_below_twelve():
    assert ShareIdGenerator(length=4, store=_MemoryStore()).length == 12
    assert len(ShareIdGenerator(length=20, store=_MemoryStore()).random_token()) == 20


def test_collision_is_resolved_by_regeneration(monkeypatch):
    store = _MemoryStore(existing={"AAAAAAAAAAAA"})
    generator = ShareIdGenerator(store=store)
    scripted = iter(["AAAAAAAAAAAA", "AAAAAAAAAAAA", "BBBBBBBBBBBB"])
    monkeypatch.setattr(generator, "random_token", lambda: next(scripted))

    assert generator.generate(db=None) == "BBBBBBBBBBBB"
    assert store.checks == 3


def test_generate_checks_the_real_store(db_session_fixture, make_record):
    record = make_record(share_id="TakenTaken12")
    generator = ShareIdGenerator()
    scripted = iter([record.share_id, "FreshFresh12"])
    generator.random_token = lambda: next(scripted)

    assert generator.generate(db_session_fixture) == "FreshFresh12"
