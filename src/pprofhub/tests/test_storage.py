from datetime import datetime, timedelta, timezone

from pprofhub.schemas import ConnectionCreate, ProfileType

from conftest import make_profile


class TestProfiles:
    def test_create_assigns_id_and_timestamp(self, store):
        before = datetime.now(tz=timezone.utc)
        profile = store.create_profile(make_profile())

        assert profile.id == 1
        assert profile.filename == "test_profile.pprof"
        assert profile.original_filename == "profile.pprof"
        assert profile.profile_type is ProfileType.CPU
        assert profile.uploaded_at >= before
        assert store.get_profile(profile.id) == profile

    def test_ids_are_unique_and_never_reused(self, store):
        first = store.create_profile(make_profile())
        second = store.create_profile(make_profile(filename="b.pprof"))
        store.delete_profile(second.id)
        third = store.create_profile(make_profile(filename="c.pprof"))

        assert len({first.id, second.id, third.id}) == 3
        assert third.id > second.id > first.id

    def test_get_missing_profile(self, store):
        assert store.get_profile(9999) is None

    def test_get_profiles_returns_all(self, store):
        store.create_profile(make_profile())
        store.create_profile(make_profile(filename="test_profile2.pprof", profile_type="heap"))

        names = {p.filename for p in store.get_profiles()}
        assert names == {"test_profile.pprof", "test_profile2.pprof"}

    def test_update_changes_fields(self, store):
        created = store.create_profile(make_profile())
        updated = store.update_profile(created.id, {"description": "Updated description", "is_saved": True})

        assert updated.description == "Updated description"
        assert updated.is_saved is True
        stored = store.get_profile(created.id)
        assert stored.description == "Updated description"
        assert stored.is_saved is True
        assert stored.uploaded_at == created.uploaded_at

    def test_update_cannot_change_id(self, store):
        created = store.create_profile(make_profile())
        updated = store.update_profile(created.id, {"id": 42, "description": "x"})

        assert updated.id == created.id
        assert store.get_profile(42) is None

    def test_update_missing_profile(self, store):
        assert store.update_profile(9999, {"description": "test"}) is None

    def test_delete_twice_reports_absence(self, store):
        created = store.create_profile(make_profile())

        assert store.delete_profile(created.id) is True
        assert store.get_profile(created.id) is None
        assert store.delete_profile(created.id) is False

    def test_saved_profiles_only_returns_saved(self, store):
        store.create_profile(make_profile())
        store.create_profile(make_profile(filename="test_saved.pprof", is_saved=True))

        saved = store.get_saved_profiles()
        assert [p.filename for p in saved] == ["test_saved.pprof"]
        assert all(p.is_saved for p in saved)

    def test_recent_profiles_newest_first_with_limit(self, store):
        now = datetime.now(tz=timezone.utc)
        older = store.create_profile(make_profile(filename="older.pprof"))
        newer = store.create_profile(make_profile(filename="newer.pprof"))
        oldest = store.create_profile(make_profile(filename="oldest.pprof"))
        store.update_profile(older.id, {"uploaded_at": now - timedelta(days=1)})
        store.update_profile(newer.id, {"uploaded_at": now})
        store.update_profile(oldest.id, {"uploaded_at": now - timedelta(days=2)})

        recent = store.get_recent_profiles(2)
        assert [p.filename for p in recent] == ["newer.pprof", "older.pprof"]
        assert [p.filename for p in store.get_profiles()] == ["newer.pprof", "older.pprof", "oldest.pprof"]

    def test_recent_profiles_default_limit_and_ties(self, store):
        stamp = datetime(2024, 1, 1, tzinfo=timezone.utc)
        for i in range(12):
            p = store.create_profile(make_profile(filename=f"p{i}.pprof"))
            store.update_profile(p.id, {"uploaded_at": stamp})

        recent = store.get_recent_profiles()
        assert len(recent) == 10
        # equal timestamps: highest id first
        assert [p.id for p in recent] == list(range(12, 2, -1))

    def test_recent_profiles_negative_limit(self, store):
        store.create_profile(make_profile())
        assert store.get_recent_profiles(-5) == []


class TestConnections:
    payload = ConnectionCreate(name="Test Connection", url="http://test.example.com:8080/debug/pprof", is_active=True)

    def test_create_connection(self, store):
        created = store.create_connection(self.payload)

        assert created.id == 1
        assert created.name == "Test Connection"
        assert created.url == "http://test.example.com:8080/debug/pprof"
        assert created.is_active is True
        assert created.last_connected is None
        assert store.get_connection(created.id) == created

    def test_get_connections_in_insertion_order(self, store):
        store.create_connection(self.payload)
        store.create_connection(ConnectionCreate(name="Test Connection 2", url="http://test2.example.com:8080"))

        assert [c.name for c in store.get_connections()] == ["Test Connection", "Test Connection 2"]

    def test_update_connection(self, store):
        created = store.create_connection(self.payload)
        updated = store.update_connection(created.id, {"name": "Updated Connection Name", "is_active": False})

        assert updated.name == "Updated Connection Name"
        assert updated.is_active is False
        assert store.get_connection(created.id).name == "Updated Connection Name"

    def test_update_missing_connection(self, store):
        assert store.update_connection(7, {"name": "nope"}) is None

    def test_touch_connection(self, store):
        created = store.create_connection(ConnectionCreate(name="svc", url="http://localhost:6060"))
        touched = store.touch_connection(created.id)

        assert touched.is_active is True
        assert touched.last_connected is not None

    def test_delete_connection(self, store):
        created = store.create_connection(self.payload)

        assert store.delete_connection(created.id) is True
        assert store.get_connection(created.id) is None
        assert store.delete_connection(created.id) is False
