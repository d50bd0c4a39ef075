# tests/core/jobs/test_backfill.py
"""Tests for the historical delegation class back-fill."""

import json
from typing import Any

import pytest
from sqlalchemy import select

from tests.fixtures.jobs import DS_DIGEST, SCENARIO_A, insert_legacy_job
from zonetest.contracts import DelegationClass
from zonetest.core.config import JobSettings, ZonetestSettings
from zonetest.core.jobs import JobDB, JobStore, backfill_delegation_class, jobs_table


def _row(db: JobDB, job_id: int) -> Any:
    with db.connection() as conn:
        return conn.execute(select(jobs_table).where(jobs_table.c.job_id == job_id)).fetchone()


@pytest.fixture
def job_settings(zonetest_settings: ZonetestSettings) -> JobSettings:
    return zonetest_settings.jobs


class TestBackfill:
    def test_classifies_legacy_rows(self, job_db: JobDB, job_settings: JobSettings) -> None:
        delegated_id, _ = insert_legacy_job(job_db, json.dumps({"domain": "xa"}))
        undelegated_id, _ = insert_legacy_job(job_db, json.dumps(SCENARIO_A))

        report = backfill_delegation_class(job_db, job_settings)

        assert report.scanned == 2
        assert report.updated == 2
        assert report.ok
        assert _row(job_db, delegated_id).delegation_class == "delegated"
        assert _row(job_db, undelegated_id).delegation_class == "undelegated"

    def test_empty_overrides_are_delegated(self, job_db: JobDB, job_settings: JobSettings) -> None:
        raw = {
            "domain": "xa",
            "nameservers": [{"ns": "", "ip": ""}],
            "ds_info": [{"keytag": "", "algorithm": "", "digtype": "", "digest": ""}],
        }
        job_id, _ = insert_legacy_job(job_db, json.dumps(raw))

        backfill_delegation_class(job_db, job_settings)

        assert _row(job_db, job_id).delegation_class == "delegated"

    def test_matches_live_classification(self, store: JobStore, job_db: JobDB, job_settings: JobSettings) -> None:
        raw = {"domain": "xa", "ds_info": [{"keytag": 7, "algorithm": 13, "digtype": 2, "digest": DS_DIGEST}]}
        legacy_id, _ = insert_legacy_job(job_db, json.dumps(raw), domain="xa")
        live = store.get(store.submit({**raw, "ipv4": True}).identity)

        backfill_delegation_class(job_db, job_settings)

        assert _row(job_db, legacy_id).delegation_class == live.delegation_class.value

    def test_idempotent(self, job_db: JobDB, job_settings: JobSettings) -> None:
        insert_legacy_job(job_db, json.dumps({"domain": "xa"}))
        insert_legacy_job(job_db, json.dumps(SCENARIO_A))

        backfill_delegation_class(job_db, job_settings)
        second = backfill_delegation_class(job_db, job_settings)
        full = backfill_delegation_class(job_db, job_settings, reclassify_all=True)

        assert second.scanned == 0
        assert second.updated == 0
        assert full.scanned == 2
        assert full.updated == 0
        assert full.unchanged == 2

    def test_only_delegation_class_written(self, job_db: JobDB, job_settings: JobSettings) -> None:
        raw_json = json.dumps({**SCENARIO_A, "client_id": "legacy-ui"})
        job_id, identity = insert_legacy_job(job_db, raw_json, result_json='{"messages": ["kept"]}')
        before = _row(job_db, job_id)

        backfill_delegation_class(job_db, job_settings)

        after = _row(job_db, job_id)
        assert after.identity == identity == before.identity
        assert after.raw_params_json == raw_json
        assert after.result_json == before.result_json
        assert after.state == before.state
        assert after.submitted_at == before.submitted_at
        assert after.delegation_class == "undelegated"

    def test_failures_reported_and_run_continues(self, job_db: JobDB, job_settings: JobSettings) -> None:
        broken_json_id, _ = insert_legacy_job(job_db, "{not json")
        no_domain_id, _ = insert_legacy_job(job_db, json.dumps({"ipv4": True}))
        not_object_id, _ = insert_legacy_job(job_db, json.dumps({"domain": "xa", "ds_info": ["11627 8 2 abcd"]}))
        good_id, _ = insert_legacy_job(job_db, json.dumps({"domain": "xa"}))

        report = backfill_delegation_class(job_db, job_settings)

        assert report.scanned == 4
        assert report.updated == 1
        assert not report.ok
        assert [f.job_id for f in report.failures] == [broken_json_id, no_domain_id, not_object_id]
        assert _row(job_db, broken_json_id).delegation_class is None
        assert _row(job_db, good_id).delegation_class == "delegated"

    def test_rerun_after_failure_rescans_only_failed_rows(self, job_db: JobDB, job_settings: JobSettings) -> None:
        broken_id, _ = insert_legacy_job(job_db, "{not json")
        insert_legacy_job(job_db, json.dumps({"domain": "xa"}))

        backfill_delegation_class(job_db, job_settings)
        rerun = backfill_delegation_class(job_db, job_settings)

        assert rerun.scanned == 1
        assert [f.job_id for f in rerun.failures] == [broken_id]

    def test_retired_keys_and_profiles_tolerated(self, job_db: JobDB, job_settings: JobSettings) -> None:
        raw = {"domain": "xa", "profile": "retired-profile", "priority": 5, "queue": 1}
        job_id, _ = insert_legacy_job(job_db, json.dumps(raw))

        report = backfill_delegation_class(job_db, job_settings)

        assert report.ok
        assert _row(job_db, job_id).delegation_class == "delegated"

    def test_chunking_visits_every_row_once(self, job_db: JobDB, job_settings: JobSettings) -> None:
        for i in range(7):
            insert_legacy_job(job_db, json.dumps({"domain": f"d{i}.fr"}))
        insert_legacy_job(job_db, "{broken")
        for i in range(3):
            insert_legacy_job(job_db, json.dumps(SCENARIO_A))

        report = backfill_delegation_class(job_db, job_settings, chunk_size=2)

        assert report.scanned == 11
        assert report.updated == 10
        assert len(report.failures) == 1

    def test_reclassify_all_corrects_wrong_values(self, job_db: JobDB, job_settings: JobSettings) -> None:
        job_id, _ = insert_legacy_job(job_db, json.dumps(SCENARIO_A), delegation_class=DelegationClass.DELEGATED.value)

        untouched = backfill_delegation_class(job_db, job_settings)
        assert untouched.scanned == 0

        fixed = backfill_delegation_class(job_db, job_settings, reclassify_all=True)
        assert fixed.updated == 1
        assert _row(job_db, job_id).delegation_class == "undelegated"

    def test_invalid_chunk_size(self, job_db: JobDB, job_settings: JobSettings) -> None:
        with pytest.raises(ValueError, match="chunk_size"):
            backfill_delegation_class(job_db, job_settings, chunk_size=-5)

    def test_report_duration_recorded(self, job_db: JobDB, job_settings: JobSettings) -> None:
        report = backfill_delegation_class(job_db, job_settings)
        assert report.scanned == 0
        assert report.duration_seconds >= 0.0


class TestOverrideContentsNotJudged:
    """Any non-empty override value makes a historical job undelegated, valid or not."""

    @pytest.mark.parametrize(
        "raw",
        [
            pytest.param({"domain": "xa", "nameservers": [{"ns": "", "ip": "192.0.2.1"}]}, id="ip-without-ns"),
            pytest.param({"domain": "xa", "nameservers": [{"ns": "ns1.b.example", "ip": "bogus"}]}, id="unparseable-ip"),
            pytest.param(
                {"domain": "xa", "ds_info": [{"keytag": 70000, "algorithm": 8, "digtype": 2, "digest": DS_DIGEST}]},
                id="keytag-out-of-range",
            ),
            pytest.param({"domain": "xa", "ds_info": [{"keytag": "abc"}]}, id="partial-ds"),
            pytest.param({"domain": "xa", "ds_info": [{"digest": "not hex"}]}, id="non-hex-digest"),
            pytest.param({"domain": "xa", "nameservers": [{"ns": 42}]}, id="numeric-ns"),
        ],
    )
    def test_classified_undelegated(self, job_db: JobDB, job_settings: JobSettings, raw: dict[str, Any]) -> None:
        job_id, _ = insert_legacy_job(job_db, json.dumps(raw))

        report = backfill_delegation_class(job_db, job_settings)

        assert report.ok
        assert _row(job_db, job_id).delegation_class == "undelegated"

    def test_old_scalar_types_tolerated(self, job_db: JobDB, job_settings: JobSettings) -> None:
        raw = {"domain": "xa", "ipv4": 1, "ipv6": "false", "profile": 3}
        job_id, _ = insert_legacy_job(job_db, json.dumps(raw))

        report = backfill_delegation_class(job_db, job_settings)

        assert report.ok
        assert _row(job_db, job_id).delegation_class == "delegated"

    def test_agrees_with_live_submission(self, store: JobStore, job_db: JobDB, job_settings: JobSettings) -> None:
        raw = {"domain": "xa", "nameservers": [{"ns": "ns1.b.example", "ip": "bogus"}]}
        legacy_id, _ = insert_legacy_job(job_db, json.dumps(raw), domain="xa")
        live = store.get(store.submit({**raw, "ipv6": True}).identity)

        backfill_delegation_class(job_db, job_settings)

        assert live.delegation_class is DelegationClass.UNDELEGATED
        assert _row(job_db, legacy_id).delegation_class == live.delegation_class.value
