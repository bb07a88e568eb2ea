import asyncio
from datetime import date

from conftest import build_sync, make_contact, make_visit, run
from medicall.models import Category, Procedure, TimeOffEvent, User, UserRole
from medicall.services.store import KEY_CONTACTS, JsonFileStore, MemoryStore
from medicall.services import sync as sync_module
from medicall.services.sync import OFFLINE_MESSAGE, ConnectionStatus, create_sync_service


def _seed_contacts(n=25):
    return [make_contact(f"hos-{i}", name=f"HOSPITAL {i}", category=Category.HOSPITAL) for i in range(n)]


class TestStartup:
    def test_loads_remote_and_caches(self, remote, memory_store):
        remote.seed("doctors", [make_contact("doc-1"), make_contact("doc-2", name="DRA. QUINN")])
        remote.seed("timeoff", [TimeOffEvent(id="t-1", executive="LUIS",
                                             start_date=date(2024, 6, 1), end_date=date(2024, 6, 2))])
        sync = build_sync(remote, memory_store)

        async def scenario():
            status = await sync.startup()
            await sync.close()
            return status

        assert run(scenario()) == ConnectionStatus.ONLINE
        assert {c.id for c in sync.contacts} == {"doc-1", "doc-2"}
        assert [t.id for t in sync.time_off] == ["t-1"]
        assert sync.last_error is None
        assert len(memory_store.load(KEY_CONTACTS)) == 2

    def test_timeout_with_cache_scenario_d(self, remote, memory_store):
        cached = [make_contact(f"doc-{i}") for i in range(40)]
        memory_store.save(KEY_CONTACTS, [c.to_wire() for c in cached])
        remote.mode = "slow"
        sync = build_sync(remote, memory_store, timeout=0.1)

        async def scenario():
            status = await sync.startup()
            await sync.close()
            return status

        assert run(scenario()) == ConnectionStatus.OFFLINE
        assert len(sync.contacts) == 40
        assert sync.last_error == OFFLINE_MESSAGE
        assert sync.syncing is False

    def test_connection_error_without_cache_uses_seed(self, remote):
        remote.mode = "down"
        sync = build_sync(remote, seed=_seed_contacts())

        async def scenario():
            await sync.startup()
            await sync.close()

        run(scenario())
        assert sync.status == ConnectionStatus.OFFLINE
        assert len(sync.contacts) == 25

    def test_bundled_seed_is_loaded_by_default(self, remote):
        remote.mode = "error"
        sync = build_sync(remote)

        async def scenario():
            await sync.startup()
            await sync.close()

        run(scenario())
        assert len(sync.contacts) == 25
        assert all(c.category == Category.HOSPITAL for c in sync.contacts)

    def test_empty_remote_gets_bootstrapped_with_one_bulk_call(self, remote):
        sync = build_sync(remote, seed=_seed_contacts(3))

        async def scenario():
            await sync.startup()
            await sync.close()

        run(scenario())
        assert sync.status == ConnectionStatus.ONLINE
        assert len(sync.contacts) == 3
        assert remote.writes() == [("POST", "/doctors/bulk")]
        assert len(remote.collections["doctors"]) == 3

    def test_invalid_remote_document_is_skipped(self, remote):
        broken = {**make_contact("doc-2").to_wire(), "address": None}
        remote.seed("doctors", [make_contact("doc-1"), broken])
        sync = build_sync(remote, seed=[make_contact("seed-1")])

        async def scenario():
            status = await sync.startup()
            await sync.close()
            return status

        assert run(scenario()) == ConnectionStatus.ONLINE
        assert [c.id for c in sync.contacts] == ["doc-1"]
        assert remote.writes() == []


class TestResync:
    def test_empty_remote_keeps_local_and_pushes_once(self, remote):
        remote.seed("doctors", [make_contact("doc-1"), make_contact("doc-2", name="DRA. QUINN")])
        sync = build_sync(remote)

        async def scenario():
            await sync.startup()
            remote.collections["doctors"].clear()
            status = await sync.resync()
            await sync.close()
            return status

        assert run(scenario()) == ConnectionStatus.ONLINE
        assert {c.id for c in sync.contacts} == {"doc-1", "doc-2"}
        assert remote.writes() == [("POST", "/doctors/bulk")]
        assert set(remote.collections["doctors"]) == {"doc-1", "doc-2"}

    def test_failure_keeps_loaded_state(self, remote):
        remote.seed("doctors", [make_contact("doc-1")])
        sync = build_sync(remote)

        async def scenario():
            await sync.startup()
            remote.mode = "down"
            status = await sync.resync()
            await sync.close()
            return status

        assert run(scenario()) == ConnectionStatus.OFFLINE
        assert [c.id for c in sync.contacts] == ["doc-1"]

    def test_recovers_when_remote_comes_back(self, remote):
        remote.mode = "down"
        remote.seed("doctors", [make_contact("doc-1")])
        sync = build_sync(remote, seed=_seed_contacts(2))

        async def scenario():
            await sync.startup()
            remote.mode = "ok"
            status = await sync.resync()
            await sync.close()
            return status

        assert run(scenario()) == ConnectionStatus.ONLINE
        assert [c.id for c in sync.contacts] == ["doc-1"]

    def test_hidden_tick_does_not_call_remote(self, remote):
        sync = build_sync(remote)

        async def scenario():
            ran = await sync.tick(False)
            await sync.close()
            return ran

        assert run(scenario()) is False
        assert remote.calls == []

    def test_background_loop_polls_until_stopped(self, remote):
        remote.seed("doctors", [make_contact("doc-1")])
        sync = build_sync(remote)
        sync.interval = 0.01

        async def scenario():
            poller = asyncio.create_task(sync.run_background(lambda: True))
            await asyncio.sleep(0.1)
            sync.stop()
            await poller
            await sync.close()

        run(scenario())
        assert sum(1 for method, path in remote.calls if path == "/doctors") >= 1


class TestOptimisticWrites:
    def test_write_without_event_loop_is_logged_not_raised(self, remote, memory_store):
        remote.seed("doctors", [make_contact("doc-1")])
        sync = build_sync(remote, memory_store)
        run(sync.startup())

        sync.add_contact(make_contact("doc-2", name="DRA. CUDDY"))

        assert [c.id for c in sync.contacts] == ["doc-2", "doc-1"]
        assert [c["id"] for c in memory_store.load(KEY_CONTACTS)] == ["doc-2", "doc-1"]
        assert sync.outbox.failed == 1
        assert sync.outbox.pending == 0
        assert remote.writes() == []
        run(sync.close())

    def test_failed_write_is_not_rolled_back(self, remote):
        remote.seed("doctors", [make_contact("doc-1")])
        sync = build_sync(remote)

        async def scenario():
            await sync.startup()
            remote.fail_writes = True
            sync.add_contact(make_contact("doc-2", name="DRA. CUDDY"))
            await sync.outbox.drain()
            await sync.close()

        run(scenario())
        assert [c.id for c in sync.contacts] == ["doc-2", "doc-1"]
        assert sync.outbox.failed == 1
        assert "doc-2" not in remote.collections["doctors"]

    def test_delete_contact_removes_visits_scenario_e(self, remote, memory_store):
        visits = [make_visit(f"v-{i}") for i in range(3)]
        remote.seed("doctors", [make_contact("doc-9", visits=visits), make_contact("doc-1")])
        sync = build_sync(remote, memory_store)

        async def scenario():
            await sync.startup()
            sync.delete_contact("doc-9")
            await sync.outbox.drain()
            await sync.close()

        run(scenario())
        assert sync.find_contact("doc-9") is None
        assert ("DELETE", "/doctors/doc-9") in remote.writes()
        cached_ids = {c["id"] for c in memory_store.load(KEY_CONTACTS)}
        assert cached_ids == {"doc-1"}

    def test_update_replaces_whole_document(self, remote):
        remote.seed("doctors", [make_contact("doc-1")])
        sync = build_sync(remote)

        async def scenario():
            await sync.startup()
            contact = sync.get_contact("doc-1")
            sync.update_contact(contact.model_copy(update={"visits": [make_visit("v-7")]}))
            await sync.outbox.drain()
            await sync.close()

        run(scenario())
        assert [v["id"] for v in remote.collections["doctors"]["doc-1"]["visits"]] == ["v-7"]

    def test_import_is_idempotent(self, remote):
        remote.seed("doctors", [make_contact("doc-1")])
        sync = build_sync(remote)
        batch = [make_contact("doc-1", name="DR. HOUSE M."), make_contact("doc-2")]

        async def scenario():
            await sync.startup()
            first = sync.import_contacts(batch)
            snapshot = [c.model_dump() for c in sync.contacts]
            sync.import_contacts(batch)
            await sync.outbox.drain()
            await sync.close()
            return first, snapshot

        count, snapshot = run(scenario())
        assert count == 2
        assert [c.model_dump() for c in sync.contacts] == snapshot
        assert sync.get_contact("doc-1").name == "DR. HOUSE M."
        assert remote.writes().count(("POST", "/doctors/bulk")) == 2

    def test_clear_category(self, remote):
        remote.seed("doctors", [
            make_contact("doc-1"),
            make_contact("hos-1", category=Category.HOSPITAL),
            make_contact("hos-2", category=Category.HOSPITAL),
        ])
        sync = build_sync(remote)

        async def scenario():
            await sync.startup()
            removed = sync.clear_category(Category.HOSPITAL)
            await sync.outbox.drain()
            await sync.close()
            return removed

        assert run(scenario()) == 2
        assert [c.id for c in sync.contacts] == ["doc-1"]
        assert list(remote.collections["doctors"]) == ["doc-1"]

    def test_time_off_and_procedures(self, remote):
        sync = build_sync(remote, seed=[make_contact("doc-1")])
        toff = TimeOffEvent(id="t-1", executive="LUIS", start_date=date(2024, 6, 3), end_date=date(2024, 6, 3))
        proc = Procedure(id="p-1", date=date(2024, 6, 4), doctor_id="doc-1", cost=1000.0)

        async def scenario():
            await sync.startup()
            sync.add_time_off(toff)
            sync.add_procedure(proc)
            sync.update_procedure(proc.model_copy(update={"cost": 1500.0}))
            sync.delete_time_off("t-1")
            await sync.outbox.drain()
            await sync.close()

        run(scenario())
        assert sync.time_off == []
        assert sync.procedures[0].cost == 1500.0
        assert remote.collections["procedures"]["p-1"]["cost"] == 1500.0
        assert "t-1" not in remote.collections["timeoff"]


class TestSessionAndCache:
    def test_cache_round_trip(self, remote, memory_store):
        remote.seed("doctors", [make_contact("doc-1", visits=[make_visit()])])
        sync = build_sync(remote, memory_store)

        async def scenario():
            await sync.startup()
            await sync.close()

        run(scenario())
        restored = build_sync(remote, memory_store)
        assert restored.load_from_cache() is True
        assert [c.model_dump() for c in restored.contacts] == [c.model_dump() for c in sync.contacts]

    def test_login_logout_clears_cache(self, remote, memory_store):
        sync = build_sync(remote, memory_store)
        sync.login(User(name="LUIS", role=UserRole.EXECUTIVE))
        sync.set_sidebar_collapsed(True)
        memory_store.save(KEY_CONTACTS, [])

        assert sync.current_user().name == "LUIS"
        assert sync.sidebar_collapsed() is True

        sync.logout()
        assert sync.current_user() is None
        assert sync.sidebar_collapsed() is False
        assert memory_store.load(KEY_CONTACTS) is None


class TestStores:
    def test_memory_store_versions_keys(self):
        old = MemoryStore(version="v4")
        old.save(KEY_CONTACTS, [{"id": "x"}])
        assert old.load(KEY_CONTACTS) == [{"id": "x"}]
        assert old.versioned(KEY_CONTACTS) == "contacts_v4"

    def test_json_file_store(self, tmp_path):
        store = JsonFileStore(str(tmp_path), version="v5")
        store.save(KEY_CONTACTS, [{"id": "doc-1", "name": "DR. ÁLVAREZ"}])

        assert (tmp_path / "contacts_v5.json").exists()
        assert store.load(KEY_CONTACTS)[0]["name"] == "DR. ÁLVAREZ"
        assert JsonFileStore(str(tmp_path), version="v6").load(KEY_CONTACTS) is None

        store.clear()
        assert store.load(KEY_CONTACTS) is None

    def test_json_file_store_ignores_corrupt_file(self, tmp_path):
        (tmp_path / "contacts_v5.json").write_text("{not json", encoding="utf-8")
        assert JsonFileStore(str(tmp_path), version="v5").load(KEY_CONTACTS) is None

    def test_default_service_uses_configured_cache(self, tmp_path, monkeypatch):
        monkeypatch.setattr(sync_module, "CACHE_DIR", str(tmp_path))
        service = create_sync_service()

        assert isinstance(service.store, JsonFileStore)
        assert service.store.cache_dir == tmp_path
        assert service.store.version == "v5"
        run(service.close())
