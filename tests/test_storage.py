import json

import pytest

from conftest import make_listing
from exceptions import InternshipNotFoundError, PresetNotFoundError, StoreError
from models import CompanyDetails, Detail, Internship, MatchAnalysis
from storage import Storage


def make_internship(id="1001", company="Acme Labs", **overrides) -> Internship:
    listing = make_listing(id=id, company=company)
    internship = Internship.from_listing(listing, Detail(meta="", description=f"About {id}"))
    for key, value in overrides.items():
        setattr(internship, key, value)
    return internship


def disk_full(path, payload):
    raise StoreError(f"Failed to write {path}: disk full")


class TestInternships:
    def test_missing_files_start_empty(self, storage):
        assert storage.get_internships() == []
        assert storage.get_blacklist() == []
        assert storage.get_companies() == {}
        assert storage.get_presets() == {}

    def test_save_is_idempotent(self, storage):
        assert storage.save_internship(make_internship()) is True
        assert storage.save_internship(make_internship(title="Changed")) is False

        stored = storage.get_internships()
        assert len(stored) == 1
        assert stored[0].title == "Backend Intern"

    def test_save_resets_seen_and_stamps(self, storage):
        storage.save_internship(make_internship(seen=True))

        stored = storage.get_internship("1001")
        assert stored.seen is False
        assert stored.saved_on

    def test_newest_first(self, storage):
        for id in ("1", "2", "3"):
            storage.save_internship(make_internship(id=id))

        assert [item.id for item in storage.get_internships()] == ["3", "2", "1"]

    def test_survives_reload(self, storage, tmp_path):
        internship = make_internship(
            skills=["Python"],
            match_analysis=MatchAnalysis(score=70, verdict="Good Match", summary="ok"),
        )
        storage.save_internship(internship)

        reloaded = Storage(tmp_path / "data").get_internship("1001")
        assert reloaded.skills == ["Python"]
        assert reloaded.match_analysis.score == 70
        assert reloaded.description == "About 1001"

    def test_snapshot_uses_camel_case_keys(self, storage):
        storage.save_internship(make_internship(posted_on="today", location_type="Remote"))

        raw = json.loads(storage.internships_path.read_text(encoding="utf-8"))
        assert raw[0]["postedOn"] == "today"
        assert raw[0]["locationType"] == "Remote"
        assert raw[0]["seen"] is False

    def test_seen_filters_and_toggle(self, storage):
        storage.save_internship(make_internship(id="1"))
        storage.save_internship(make_internship(id="2"))

        assert storage.toggle_seen("1") is True

        assert [item.id for item in storage.get_internships("seen")] == ["1"]
        assert [item.id for item in storage.get_internships("unseen")] == ["2"]
        assert storage.toggle_seen("1") is False

    def test_unknown_filter_rejected(self, storage):
        with pytest.raises(ValueError):
            storage.get_internships("archived")

    def test_delete(self, storage):
        storage.save_internship(make_internship(id="1"))
        storage.delete_internship("1")

        assert storage.is_processed("1") is False
        with pytest.raises(InternshipNotFoundError):
            storage.delete_internship("1")

    def test_toggle_seen_unknown_id(self, storage):
        with pytest.raises(InternshipNotFoundError):
            storage.toggle_seen("missing")

    def test_update_keeps_seen_and_saved_on(self, storage):
        storage.save_internship(make_internship())
        storage.toggle_seen("1001")
        saved_on = storage.get_internship("1001").saved_on

        storage.update_internship(make_internship(title="Platform Intern"))

        stored = storage.get_internship("1001")
        assert stored.title == "Platform Intern"
        assert stored.seen is True
        assert stored.saved_on == saved_on

    def test_update_unknown_id(self, storage):
        with pytest.raises(InternshipNotFoundError):
            storage.update_internship(make_internship())


class TestBlacklist:
    def test_blacklisted_companies_hidden_not_deleted(self, storage):
        storage.save_internship(make_internship(id="1", company="Acme Labs"))
        storage.save_internship(make_internship(id="2", company="Globex"))

        assert storage.toggle_blacklist("Acme Labs") is True

        assert [item.id for item in storage.get_internships()] == ["2"]
        assert storage.is_processed("1")
        assert len(storage.get_internships(include_blacklisted=True)) == 2

    def test_membership_uses_normalized_names(self, storage):
        storage.toggle_blacklist("  Acme   Labs Pvt Ltd ")

        assert storage.is_blacklisted("acme labs")
        assert storage.get_blacklist() == ["Acme Labs Pvt Ltd"]

    def test_toggle_removes(self, storage):
        storage.toggle_blacklist("Acme Labs")

        assert storage.toggle_blacklist("ACME LABS") is False
        assert storage.get_blacklist() == []


class TestCompanies:
    def test_upsert_overwrites(self, storage):
        storage.save_company("Acme Labs", CompanyDetails(name="Acme Labs", about="old"), "first")
        record = storage.save_company("acme labs", CompanyDetails(name="Acme Labs", about="new"), None)

        assert record.name == "Acme Labs"
        companies = storage.get_companies()
        assert list(companies) == ["Acme Labs"]
        assert companies["Acme Labs"].details.about == "new"
        assert companies["Acme Labs"].analysis is None
        assert companies["Acme Labs"].saved_on

    def test_lookup_is_normalized(self, storage, tmp_path):
        storage.save_company("Acme Labs", None, "**Rating:** 7/10")

        record = Storage(tmp_path / "data").get_company("ACME LABS.")
        assert record.analysis == "**Rating:** 7/10"
        assert storage.get_company("Globex") is None


class TestPresets:
    def test_round_trip(self, storage, tmp_path):
        urls = ["https://internshala.com/internships/python", "https://www.naukri.com/python-jobs"]
        storage.save_preset("python", urls)

        assert Storage(tmp_path / "data").get_preset("python") == urls

    def test_unknown_preset(self, storage):
        with pytest.raises(PresetNotFoundError):
            storage.get_preset("nope")
        with pytest.raises(PresetNotFoundError):
            storage.delete_preset("nope")

    def test_delete(self, storage):
        storage.save_preset("python", ["https://internshala.com/internships/python"])
        storage.delete_preset("python")

        assert storage.get_presets() == {}

    @pytest.mark.parametrize("name, urls", [("", ["https://a.com"]), ("ok", "https://a.com")])
    def test_invalid_input(self, storage, name, urls):
        with pytest.raises(ValueError):
            storage.save_preset(name, urls)


class TestCorruptSnapshots:
    def test_malformed_json(self, storage):
        storage.data_dir.mkdir(parents=True)
        storage.internships_path.write_text("{not json", encoding="utf-8")

        with pytest.raises(StoreError):
            storage.get_internships()

    def test_wrong_shape(self, storage):
        storage.data_dir.mkdir(parents=True)
        storage.presets_path.write_text("[]", encoding="utf-8")

        with pytest.raises(StoreError):
            storage.load()

    @pytest.mark.parametrize("filename, content", [
        ("presets.json", '{"python": "https://internshala.com/internships/python"}'),
        ("presets.json", '{"python": ["https://a.com", 7]}'),
        ("blacklist.json", '["Acme Labs", {"name": "Globex"}]'),
    ])
    def test_wrong_element_types(self, storage, filename, content):
        storage.data_dir.mkdir(parents=True)
        (storage.data_dir / filename).write_text(content, encoding="utf-8")

        with pytest.raises(StoreError):
            storage.load()


class TestFailedWrites:
    @pytest.fixture
    def failing_writes(self, storage, monkeypatch):
        storage.load()
        monkeypatch.setattr(storage, "_write_json", disk_full)
        return storage

    def test_save_internship_leaves_memory_untouched(self, failing_writes):
        with pytest.raises(StoreError):
            failing_writes.save_internship(make_internship())

        assert failing_writes.is_processed("1001") is False
        assert failing_writes.get_internships() == []

    def test_toggle_seen_leaves_flag(self, storage, monkeypatch):
        storage.save_internship(make_internship())
        monkeypatch.setattr(storage, "_write_json", disk_full)

        with pytest.raises(StoreError):
            storage.toggle_seen("1001")

        assert storage.get_internship("1001").seen is False

    def test_delete_keeps_record(self, storage, monkeypatch):
        storage.save_internship(make_internship())
        monkeypatch.setattr(storage, "_write_json", disk_full)

        with pytest.raises(StoreError):
            storage.delete_internship("1001")

        assert storage.is_processed("1001")

    def test_toggle_blacklist_leaves_list(self, failing_writes):
        with pytest.raises(StoreError):
            failing_writes.toggle_blacklist("Acme Labs")

        assert failing_writes.is_blacklisted("Acme Labs") is False

    def test_save_company_and_preset_leave_caches(self, failing_writes):
        with pytest.raises(StoreError):
            failing_writes.save_company("Acme Labs", None, "ok")
        with pytest.raises(StoreError):
            failing_writes.save_preset("python", ["https://a.com"])

        assert failing_writes.get_company("Acme Labs") is None
        assert failing_writes.get_presets() == {}

    def test_memory_matches_disk_after_failure(self, storage, tmp_path, monkeypatch):
        storage.save_internship(make_internship(id="1"))
        original_write = storage._write_json

        monkeypatch.setattr(storage, "_write_json", disk_full)
        with pytest.raises(StoreError):
            storage.save_internship(make_internship(id="2"))
        monkeypatch.setattr(storage, "_write_json", original_write)

        on_disk = [item.id for item in Storage(tmp_path / "data").get_internships()]
        assert [item.id for item in storage.get_internships()] == on_disk == ["1"]
