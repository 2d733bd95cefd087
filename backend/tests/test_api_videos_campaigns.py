import httpx

TIKTOK_URL = "https://www.tiktok.com/@fan/video/111"


def _submit(client, headers, brightdata, urls, snapshot_id="s_v"):
    brightdata.on("/datasets/v3/trigger", httpx.Response(200, json={"snapshot_id": snapshot_id}))
    return client.post("/api/videos", json={"urls": urls}, headers=headers)


def _deliver(client, records, snapshot_id="s_v"):
    return client.post("/api/brightdata/webhook", json={"snapshot_id": snapshot_id, "data": records})


class TestVideos:
    def test_submit_and_list(self, client, auth_headers, brightdata):
        resp = _submit(client, auth_headers, brightdata, [f"{TIKTOK_URL}?is_from_webapp=1"])
        assert resp.status_code == 201
        [video] = resp.json()
        assert video["video_url"] == TIKTOK_URL
        assert video["status"] == "PENDING"

        _deliver(client, [{"url": TIKTOK_URL, "hashtags": ["lakersedit"], "play_count": 42}])

        listed = client.get("/api/videos", params={"status": "COMPLETED"}, headers=auth_headers).json()
        assert [v["total_views"] for v in listed] == [42]
        assert client.get("/api/videos", params={"status": "PENDING"}, headers=auth_headers).json() == []

        detail = client.get(f"/api/videos/{video['id']}", headers=auth_headers).json()
        assert detail["is_edit"] is True
        assert detail["hashtags"] == ["lakersedit"]

    def test_rejects_long_form_youtube(self, client, auth_headers, brightdata):
        resp = _submit(client, auth_headers, brightdata, ["https://www.youtube.com/watch?v=abc"])
        assert resp.status_code == 400
        assert brightdata.requests == []

    def test_empty_url_list(self, client, auth_headers):
        assert client.post("/api/videos", json={"urls": []}, headers=auth_headers).status_code == 422

    def test_other_users_video_is_hidden(self, client, login_as, brightdata):
        owner = login_as("owner@example.com")
        other = login_as("other@example.com")
        video_id = _submit(client, owner, brightdata, [TIKTOK_URL]).json()[0]["id"]

        assert client.get(f"/api/videos/{video_id}", headers=other).status_code == 404
        assert client.get("/api/videos", headers=other).json() == []


class TestCampaigns:
    def test_generate_sports(self, client, auth_headers):
        resp = client.post("/api/campaigns/generate", json={"input_text": "Canada"}, headers=auth_headers)
        assert resp.status_code == 200
        [suggestion] = resp.json()["suggestions"]
        assert suggestion["category"] == "sports"
        assert len(suggestion["demographics"]["locations"]) == 5

    def test_generate_requires_text(self, client, auth_headers):
        resp = client.post("/api/campaigns/generate", json={"input_text": "   "}, headers=auth_headers)
        assert resp.status_code == 422

    def test_generate_requires_auth(self, client):
        assert client.post("/api/campaigns/generate", json={"input_text": "Canada"}).status_code == 401

    def test_save_list_and_videos(self, client, auth_headers, brightdata):
        _submit(client, auth_headers, brightdata, [TIKTOK_URL, "https://www.tiktok.com/@fan/video/222"])
        _deliver(
            client,
            [
                {"url": TIKTOK_URL, "hashtags": ["footballedit"], "play_count": 10},
                {"url": "https://www.tiktok.com/@fan/video/222", "hashtags": ["footballedit", "soccer"], "play_count": 99},
            ],
        )

        suggestion = client.post(
            "/api/campaigns/generate", json={"input_text": "Canada"}, headers=auth_headers
        ).json()["suggestions"][0]
        saved = client.post(
            "/api/campaigns", json={"input_text": "Canada", "ai_payload": suggestion}, headers=auth_headers
        )
        assert saved.status_code == 201
        campaign = saved.json()
        assert campaign["name"] == "Canada Campaign"
        assert "footballedit" in campaign["hashtags"]
        assert len(campaign["video_ids"]) == 2

        listed = client.get("/api/campaigns", headers=auth_headers).json()
        assert listed["total"] == 1
        assert listed["data"][0]["id"] == campaign["id"]

        videos = client.get(f"/api/campaigns/{campaign['id']}/videos", headers=auth_headers).json()
        assert [v["total_views"] for v in videos] == [99, 10]

    def test_campaign_of_other_user_is_404(self, client, login_as):
        owner = login_as("owner@example.com")
        other = login_as("other@example.com")
        payload = {"input_text": "Marvel", "ai_payload": {"category": "media", "global_hashtags": ["marvel"]}}
        campaign_id = client.post("/api/campaigns", json=payload, headers=owner).json()["id"]

        assert client.get(f"/api/campaigns/{campaign_id}", headers=owner).status_code == 200
        assert client.get(f"/api/campaigns/{campaign_id}", headers=other).status_code == 404
        assert client.get(f"/api/campaigns/{campaign_id}/videos", headers=other).status_code == 404

    def test_save_without_hashtags(self, client, auth_headers):
        payload = {"input_text": "Marvel", "ai_payload": {"category": "media"}}
        assert client.post("/api/campaigns", json=payload, headers=auth_headers).status_code == 400
