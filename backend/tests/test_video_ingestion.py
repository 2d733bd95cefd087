import json

import httpx
import pytest
from fastapi import HTTPException
from sqlalchemy import select

from app.models import VideoSubmission
from app.services import video_ingestion

TIKTOK_URL = "https://www.tiktok.com/@fan/video/111"


class TestCanonicalize:
    def test_strips_tracking_and_dedupes(self):
        platform, urls = video_ingestion.canonicalize_submission(
            [f"{TIKTOK_URL}?is_from_webapp=1", TIKTOK_URL, "  ", "https://m.tiktok.com/@fan/video/222"]
        )
        assert platform == "tiktok"
        assert urls == [TIKTOK_URL, "https://www.tiktok.com/@fan/video/222"]

    def test_short_link_is_accepted(self):
        platform, urls = video_ingestion.canonicalize_submission(["https://vm.tiktok.com/ZMabc123/"])
        assert platform == "tiktok"
        assert urls == ["https://www.tiktok.com/ZMabc123/"]

    def test_mixed_platforms_rejected(self):
        with pytest.raises(HTTPException) as exc_info:
            video_ingestion.canonicalize_submission([TIKTOK_URL, "https://www.instagram.com/reel/AbC"])
        assert exc_info.value.status_code == 400

    def test_long_form_youtube_rejected(self):
        with pytest.raises(HTTPException) as exc_info:
            video_ingestion.canonicalize_submission(["https://www.youtube.com/watch?v=abc"])
        assert exc_info.value.status_code == 400
        assert "YouTube Shorts" in exc_info.value.detail["error"]

    def test_unsupported_url_rejected(self):
        with pytest.raises(HTTPException) as exc_info:
            video_ingestion.canonicalize_submission(["https://www.instagram.com/someone"])
        assert exc_info.value.detail["error"] == "Unsupported video URL"

    def test_empty_and_oversized_batches(self):
        with pytest.raises(HTTPException):
            video_ingestion.canonicalize_submission(["", "   "])
        with pytest.raises(HTTPException):
            video_ingestion.canonicalize_submission(
                [f"https://www.tiktok.com/@fan/video/{i}" for i in range(video_ingestion.MAX_URLS_PER_SUBMISSION + 1)]
            )


class TestSubmit:
    def test_creates_pending_rows_for_one_snapshot(self, run, make_user, brightdata):
        user = make_user()
        brightdata.on("/datasets/v3/trigger", httpx.Response(200, json={"snapshot_id": "s_vid"}))

        async def scenario(session):
            return await video_ingestion.submit_videos(
                session, user, [f"{TIKTOK_URL}?lang=en", "https://www.tiktok.com/@fan/video/222"]
            )

        submissions = run(scenario)
        assert [s.video_url for s in submissions] == [TIKTOK_URL, "https://www.tiktok.com/@fan/video/222"]
        assert {s.snapshot_id for s in submissions} == {"s_vid"}
        assert {s.status for s in submissions} == {"PENDING"}

        request = brightdata.requests[0]
        assert request.url.params["dataset_id"] == "gd_tiktok_post"
        assert request.url.params["webhook_url"] == "https://fans.example.com/api/brightdata/webhook"
        assert json.loads(request.content) == [{"url": TIKTOK_URL}, {"url": "https://www.tiktok.com/@fan/video/222"}]

    def test_resubmission_reuses_row(self, run, make_user, brightdata):
        user = make_user()
        snapshots = iter(["s_1", "s_2"])
        brightdata.on("/datasets/v3/trigger", lambda request: httpx.Response(200, json={"snapshot_id": next(snapshots)}))

        async def scenario(session):
            first = await video_ingestion.submit_videos(session, user, [TIKTOK_URL])
            second = await video_ingestion.submit_videos(session, user, [TIKTOK_URL], skip_validation=True)
            return first[0].id, second[0]

        first_id, second = run(scenario)
        assert second.id == first_id
        assert second.snapshot_id == "s_2"
        assert second.skip_validation is True

    def test_other_users_video_conflicts(self, run, make_user, brightdata):
        owner = make_user("owner@example.com")
        other = make_user("other@example.com")
        brightdata.on("/datasets/v3/trigger", httpx.Response(200, json={"snapshot_id": "s_1"}))

        async def scenario(session):
            await video_ingestion.submit_videos(session, owner, [TIKTOK_URL])
            return await video_ingestion.submit_videos(session, other, [TIKTOK_URL])

        with pytest.raises(HTTPException) as exc_info:
            run(scenario)
        assert exc_info.value.status_code == 409
        assert len(brightdata.requests) == 1

    def test_missing_post_dataset(self, run, make_user, brightdata, monkeypatch, settings):
        user = make_user()
        monkeypatch.setattr(settings, "brightdata_instagram_post_dataset_id", None)

        async def scenario(session):
            return await video_ingestion.submit_videos(session, user, ["https://www.instagram.com/reel/AbC"])

        with pytest.raises(HTTPException) as exc_info:
            run(scenario)
        assert exc_info.value.status_code == 500
        assert brightdata.requests == []


def test_extract_hashtags_shapes():
    assert video_ingestion.extract_hashtags({"hashtags": ["#NBAEdit", "nba", "NBA"]}) == ["nbaedit", "nba"]
    assert video_ingestion.extract_hashtags({"hashtags": [{"hashtag": "#Shorts"}, {"other": 1}, 5]}) == ["shorts"]
    assert video_ingestion.extract_hashtags({"hashtags": "#edit"}) == ["edit"]
    assert video_ingestion.extract_hashtags({"normalized_hashtags": ["a"], "hashtags": ["b"]}) == ["a"]
    assert video_ingestion.extract_hashtags({}) == []


class TestApplyRecord:
    def _submission(self, **fields):
        return VideoSubmission(platform="tiktok", video_url=TIKTOK_URL, skip_validation=False, **fields)

    def test_edit_hashtag_completes_with_metrics(self):
        submission = self._submission()
        video_ingestion.apply_record(
            submission,
            {"url": TIKTOK_URL, "hashtags": ["#LakersEdit"], "play_count": "1.5k", "digg_count": 20, "collect_count": 3},
        )
        assert submission.status == "COMPLETED"
        assert submission.is_edit is True
        assert submission.total_views == 1500
        assert submission.like_count == 20
        assert submission.save_count == 3
        assert submission.hashtags == ["lakersedit"]
        assert submission.raw_payload["normalized_platform"] == "tiktok"

    def test_no_edit_hashtag_is_rejected(self):
        submission = self._submission()
        video_ingestion.apply_record(submission, {"url": TIKTOK_URL, "hashtags": ["lakers"], "play_count": 10})
        assert submission.status == "REJECTED"
        assert submission.is_edit is False
        assert submission.total_views == 10
        assert submission.error == "No edit hashtag found"

    def test_skip_validation_completes_without_edit_tag(self):
        submission = self._submission()
        submission.skip_validation = True
        video_ingestion.apply_record(submission, {"url": TIKTOK_URL, "hashtags": []})
        assert submission.status == "COMPLETED"
        assert submission.is_edit is False
        assert submission.error is None

    def test_vendor_error_record_fails(self):
        submission = self._submission()
        video_ingestion.apply_record(submission, {"error": "Page not found", "input": {"url": TIKTOK_URL}})
        assert submission.status == "FAILED"
        assert submission.error == "Page not found"


class TestIngest:
    def _seed(self, run, user, urls, snapshot_id="s_1"):
        async def seed(session):
            for url in urls:
                session.add(VideoSubmission(user_id=user.id, platform="tiktok", video_url=url, snapshot_id=snapshot_id))
            await session.commit()

        run(seed)

    def _rows(self, run):
        async def rows(session):
            return {s.video_url: s for s in (await session.scalars(select(VideoSubmission))).all()}

        return run(rows)

    def test_matches_records_by_canonical_url(self, run, make_user):
        user = make_user()
        other_url = "https://www.tiktok.com/@fan/video/222"
        self._seed(run, user, [TIKTOK_URL, other_url])
        records = [
            {"url": f"{TIKTOK_URL}?lang=en", "hashtags": ["creededit"], "play_count": 100},
            {"url": other_url, "hashtags": ["boxing"], "play_count": 5},
            {"url": "https://www.tiktok.com/@x/video/999", "hashtags": ["edit"]},
            "not a record",
        ]

        async def ingest(session):
            return await video_ingestion.ingest_snapshot_records(session, "s_1", records)

        result = run(ingest)
        assert result == {"snapshot_id": "s_1", "records": 4, "completed": 1, "rejected": 1, "failed": 0, "skipped": 2}
        rows = self._rows(run)
        assert rows[TIKTOK_URL].status == "COMPLETED"
        assert rows[TIKTOK_URL].total_views == 100
        assert rows[other_url].status == "REJECTED"

    def test_short_links_match_by_submitted_input_url(self, run, make_user):
        user = make_user()
        short_links = ["https://vm.tiktok.com/ZMabc1/", "https://vm.tiktok.com/ZMdef2/"]
        _, stored = video_ingestion.canonicalize_submission(short_links)
        self._seed(run, user, stored)
        records = [
            {
                "url": "https://www.tiktok.com/@fan/video/111",
                "input": {"url": short_links[0]},
                "hashtags": ["nbaedit"],
                "play_count": 11,
            },
            {
                "url": "https://www.tiktok.com/@fan/video/222",
                "input": {"url": short_links[1]},
                "hashtags": ["nbaedit"],
                "play_count": 22,
            },
        ]

        async def ingest(session):
            return await video_ingestion.ingest_snapshot_records(session, "s_1", records)

        result = run(ingest)
        assert result["completed"] == 2
        assert result["skipped"] == 0
        rows = self._rows(run)
        assert [rows[url].total_views for url in stored] == [11, 22]

    def test_single_record_single_submission_fallback(self, run, make_user):
        user = make_user()
        self._seed(run, user, [TIKTOK_URL])

        async def ingest(session):
            return await video_ingestion.ingest_snapshot_records(session, "s_1", {"hashtags": ["nbaedit"], "views": 7})

        assert run(ingest)["completed"] == 1
        assert self._rows(run)[TIKTOK_URL].total_views == 7

    def test_ingest_snapshot_downloads(self, run, make_user, brightdata):
        user = make_user()
        self._seed(run, user, [TIKTOK_URL])
        brightdata.on(
            "/datasets/v3/snapshot/s_1/data",
            httpx.Response(200, json=[{"url": TIKTOK_URL, "hashtags": ["edit"], "play_count": 9}]),
        )

        async def ingest(session):
            return await video_ingestion.ingest_snapshot(session, "s_1")

        assert run(ingest)["completed"] == 1

    def test_ingest_snapshot_not_ready(self, run, brightdata):
        brightdata.on("/datasets/v3/snapshot/s_1/data", httpx.Response(202, json={"status": "building"}))

        async def ingest(session):
            return await video_ingestion.ingest_snapshot(session, "s_1")

        with pytest.raises(HTTPException) as exc_info:
            run(ingest)
        assert exc_info.value.status_code == 409


class TestParseVideoWebhook:
    def test_list_payload(self):
        records = [{"url": TIKTOK_URL, "input": {"snapshot_id": "s_9"}}]
        assert video_ingestion.parse_video_webhook(records) == ("s_9", records)

    def test_header_snapshot(self):
        records = [{"url": TIKTOK_URL}]
        assert video_ingestion.parse_video_webhook(records, {"x-snapshot-id": "s_h"}) == ("s_h", records)

    def test_wrapped_payload(self):
        assert video_ingestion.parse_video_webhook({"snapshot_id": "s_1", "data": {"url": TIKTOK_URL}}) == (
            "s_1",
            [{"url": TIKTOK_URL}],
        )

    def test_status_only(self):
        assert video_ingestion.parse_video_webhook({"snapshot_id": "s_1", "status": "ready"}) == ("s_1", None)

    def test_single_record_object(self):
        record = {"url": TIKTOK_URL, "snapshot_id": "s_2"}
        assert video_ingestion.parse_video_webhook(record) == ("s_2", [record])

    def test_garbage(self):
        assert video_ingestion.parse_video_webhook("nope") == (None, None)
