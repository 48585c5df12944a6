"""Tests for the JSON store and its directory lock."""
import multiprocessing

import pytest

from escrow_marketplace.storage import JsonStore


def _bump_in_process(data_dir: str, key: str, times: int) -> int:
    store = JsonStore(data_dir)
    for _ in range(times):
        store.increment("profile_views", key)
    return times


def _claim_in_process(data_dir: str, project_id: str, application_id: str) -> bool:
    return JsonStore(data_dir).compare_and_set("hire_slots", project_id, None, application_id)


class TestJsonStore:
    def test_creates_collections(self, tmp_path):
        JsonStore(tmp_path)
        for name in JsonStore.LIST_COLLECTIONS + JsonStore.MAP_COLLECTIONS:
            assert (tmp_path / f"{name}.json").exists()

    def test_unknown_collection(self, store):
        with pytest.raises(KeyError):
            store.load("users")

    def test_append_and_load(self, store):
        store.append("projects", {"id": "PROJ-1"})
        store.append("projects", {"id": "PROJ-2"})
        assert [p["id"] for p in store.load("projects")] == ["PROJ-1", "PROJ-2"]

    def test_no_temp_files_left(self, tmp_path, store):
        for n in range(5):
            store.append("payments", {"id": f"PAY-{n}"})
        assert list(tmp_path.glob("*.tmp")) == []

    def test_compare_and_set(self, store):
        assert store.compare_and_set("hire_slots", "PROJ-1", None, "APP-1")
        assert not store.compare_and_set("hire_slots", "PROJ-1", None, "APP-2")
        assert store.get("hire_slots", "PROJ-1") == "APP-1"
        assert store.compare_and_set("hire_slots", "PROJ-1", "APP-1", None)
        assert store.get("hire_slots", "PROJ-1") is None

    def test_nested_transactions(self, store):
        with store.transaction():
            with store.transaction():
                store.increment("profile_views", "freelancer-1")
        assert store.get("profile_views", "freelancer-1") == 1


class TestAcrossProcesses:
    def test_increments_are_not_lost(self, tmp_path):
        JsonStore(tmp_path)
        jobs = [(str(tmp_path), "freelancer-1", 50)] * 3

        with multiprocessing.get_context("spawn").Pool(len(jobs)) as pool:
            pool.starmap(_bump_in_process, jobs)

        assert JsonStore(tmp_path).get("profile_views", "freelancer-1") == 150
        assert list(tmp_path.glob("*.tmp")) == []

    def test_one_claim_wins(self, tmp_path):
        JsonStore(tmp_path)
        jobs = [(str(tmp_path), "PROJ-1", f"APP-{n}") for n in range(4)]

        with multiprocessing.get_context("spawn").Pool(len(jobs)) as pool:
            claimed = pool.starmap(_claim_in_process, jobs)

        assert claimed.count(True) == 1
        winner = jobs[claimed.index(True)][2]
        assert JsonStore(tmp_path).get("hire_slots", "PROJ-1") == winner
