import httpx

ACCOUNTS = "/api/settings/connected-accounts"


def _connect(client, headers, profile_url="https://www.tiktok.com/@Fan.Edits/?lang=en", **extra):
    return client.post(ACCOUNTS, json={"profile_url": profile_url, **extra}, headers=headers)


def test_connect_detects_platform_and_issues_code(client, auth_headers):
    resp = _connect(client, auth_headers)
    assert resp.status_code == 201
    body = resp.json()
    assert body["platform"] == "tiktok"
    assert body["profile_url"] == "https://www.tiktok.com/@Fan.Edits"
    assert body["username"] == "fan.edits"
    assert body["verification_status"] == "PENDING"
    assert len(body["verification_code"]) == 6

    listed = client.get(ACCOUNTS, headers=auth_headers).json()
    assert [a["id"] for a in listed] == [body["id"]]


def test_connect_requires_auth(client):
    assert _connect(client, {}).status_code == 401


def test_connect_rejects_unknown_or_invalid_urls(client, auth_headers):
    assert _connect(client, auth_headers, profile_url="https://example.com/@fan").status_code == 400
    assert _connect(client, auth_headers, profile_url="https://www.instagram.com/p/AbC123").status_code == 400
    assert _connect(client, auth_headers, profile_url="https://www.instagram.com/someone", platform="tiktok").status_code == 400


def test_connect_duplicates(client, login_as):
    owner = login_as("owner@example.com")
    other = login_as("other@example.com")
    assert _connect(client, owner).status_code == 201
    assert _connect(client, owner).status_code == 400
    assert _connect(client, other).status_code == 409


def test_handle_verified_by_someone_else_conflicts(client, login_as, brightdata):
    owner = login_as("owner@example.com")
    other = login_as("other@example.com")
    account = _connect(client, owner, profile_url="https://www.instagram.com/someone").json()

    brightdata.on("/datasets/v3/trigger", httpx.Response(200, json={"snapshot_id": "s_1"}))
    client.post(f"{ACCOUNTS}/verify", json={"account_id": account["id"]}, headers=owner)
    client.post(
        "/api/brightdata/profile-webhook",
        json=[{"biography": f"hi {account['verification_code']}", "input": {"snapshot_id": "s_1"}}],
    )

    # same handle under a different URL form
    resp = _connect(client, other, profile_url="https://instagram.com/someone/?hl=en")
    assert resp.status_code == 409


def test_delete(client, login_as):
    owner = login_as("owner@example.com")
    other = login_as("other@example.com")
    account_id = _connect(client, owner).json()["id"]

    assert client.delete(f"{ACCOUNTS}/{account_id}", headers=other).status_code == 403
    assert client.delete(f"{ACCOUNTS}/{account_id}", headers=owner).status_code == 200
    assert client.delete(f"{ACCOUNTS}/{account_id}", headers=owner).status_code == 404
    assert client.get(ACCOUNTS, headers=owner).json() == []


def test_verify_then_poll_status(client, auth_headers, brightdata):
    account = _connect(client, auth_headers).json()
    brightdata.on("/datasets/v3/trigger", httpx.Response(200, json={"snapshot_id": "s_1"}))
    brightdata.on("/datasets/v3/snapshot/s_1", httpx.Response(200, json={"status": "running"}))

    started = client.post(f"{ACCOUNTS}/verify", json={"account_id": account["id"]}, headers=auth_headers)
    assert started.status_code == 200
    assert started.json()["snapshot_id"] == "s_1"
    assert started.json()["verification_code"] == account["verification_code"]

    status = client.get(f"{ACCOUNTS}/verify/status", params={"account_id": account["id"]}, headers=auth_headers)
    assert status.json()["verification_status"] == "PENDING"
    assert status.json()["webhook_status"] == "PENDING"

    brightdata.on(
        "/datasets/v3/snapshot/s_1",
        httpx.Response(200, json={"status": "ready", "biography": f"code {account['verification_code']}"}),
    )
    status = client.get(f"{ACCOUNTS}/verify/status", params={"account_id": account["id"]}, headers=auth_headers)
    assert status.json()["verification_status"] == "VERIFIED"

    again = client.post(f"{ACCOUNTS}/verify", json={"account_id": account["id"]}, headers=auth_headers)
    assert again.json()["message"] == "Account is already verified"


def test_verify_other_users_account_is_404(client, login_as):
    owner = login_as("owner@example.com")
    other = login_as("other@example.com")
    account_id = _connect(client, owner).json()["id"]
    assert client.post(f"{ACCOUNTS}/verify", json={"account_id": account_id}, headers=other).status_code == 404


def test_wait_requires_started_verification(client, auth_headers):
    account = _connect(client, auth_headers).json()
    resp = client.post(f"{ACCOUNTS}/verify/wait", json={"account_id": account["id"]}, headers=auth_headers)
    assert resp.status_code == 400


def test_wait_returns_terminal_state(client, auth_headers, brightdata):
    account = _connect(client, auth_headers).json()
    brightdata.on("/datasets/v3/trigger", httpx.Response(200, json={"snapshot_id": "s_1"}))
    brightdata.on("/datasets/v3/snapshot/s_1", httpx.Response(200, json={"status": "failed"}))
    client.post(f"{ACCOUNTS}/verify", json={"account_id": account["id"]}, headers=auth_headers)

    resp = client.post(f"{ACCOUNTS}/verify/wait", json={"account_id": account["id"]}, headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["verification_status"] == "FAILED"
    assert resp.json()["verification_attempts"] == 1


def test_wait_times_out(client, auth_headers, brightdata):
    account = _connect(client, auth_headers).json()
    brightdata.on("/datasets/v3/trigger", httpx.Response(200, json={"snapshot_id": "s_1"}))
    brightdata.on("/datasets/v3/snapshot/s_1", httpx.Response(200, json={"status": "running"}))
    client.post(f"{ACCOUNTS}/verify", json={"account_id": account["id"]}, headers=auth_headers)

    resp = client.post(
        f"{ACCOUNTS}/verify/wait", json={"account_id": account["id"], "timeout_sec": 0.1}, headers=auth_headers
    )
    assert resp.status_code == 504
    assert resp.json()["detail"]["error"] == "Verification still pending"
