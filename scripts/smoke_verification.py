#!/usr/bin/env python3
"""
Smoke test for account verification against a running backend.

Signs up (or logs in), connects a profile, starts a BrightData profile scrape
and polls the verification status until it settles or TIMEOUT_SEC passes.
Requires real BrightData credentials on the server side.

Env vars:
  BASE_URL        (default http://localhost:8000)
  INVITE_CODE     (required for signup)
  SMOKE_EMAIL     (default smoke+<ts>@example.com)
  SMOKE_PASSWORD  (default smoke-password)
  PROFILE_URL     (default https://www.tiktok.com/@tiktok)
  TIMEOUT_SEC     (default 180)
  POLL_INTERVAL   (default 10)
"""
from __future__ import annotations

import json
import os
import sys
import time
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

BASE_URL = os.environ.get("BASE_URL", "http://localhost:8000").rstrip("/")
INVITE_CODE = os.environ.get("INVITE_CODE", "")
SMOKE_EMAIL = os.environ.get("SMOKE_EMAIL", f"smoke+{int(time.time())}@example.com")
SMOKE_PASSWORD = os.environ.get("SMOKE_PASSWORD", "smoke-password")
PROFILE_URL = os.environ.get("PROFILE_URL", "https://www.tiktok.com/@tiktok")
TIMEOUT_SEC = int(os.environ.get("TIMEOUT_SEC", "180"))
POLL_INTERVAL = int(os.environ.get("POLL_INTERVAL", "10"))

ACCOUNTS = "/api/settings/connected-accounts"

_token: str | None = None


# ── Helpers ──────────────────────────────────────────────────

class SmokeError(Exception):
    pass


def _headers() -> dict[str, str]:
    h = {"Content-Type": "application/json"}
    if _token:
        h["Authorization"] = f"Bearer {_token}"
    return h


def _req(method: str, path: str, body: dict | None = None, expect: int = 200) -> dict | list:
    url = f"{BASE_URL}{path}"
    data = json.dumps(body).encode() if body else None
    req = Request(url, data=data, headers=_headers(), method=method)
    try:
        with urlopen(req, timeout=30) as resp:
            raw = resp.read().decode()
            return json.loads(raw) if raw else {}
    except HTTPError as e:
        raw = e.read().decode()[:500]
        if e.code == expect:
            return json.loads(raw) if raw else {}
        raise SmokeError(f"{method} {path} → {e.code}: {raw}")
    except URLError as e:
        raise SmokeError(f"{method} {path} → URLError: {e}")


def GET(path: str, **params) -> dict | list:
    if params:
        path = f"{path}?{urlencode(params)}"
    return _req("GET", path)


def POST(path: str, body: dict | None = None, expect: int = 200) -> dict | list:
    return _req("POST", path, body, expect)


def step(name: str):
    print(f"\n{'='*60}")
    print(f"  STEP: {name}")
    print(f"{'='*60}")


def ok(msg: str):
    print(f"  ✅ {msg}")


def fail(msg: str):
    print(f"  ❌ {msg}")
    raise SmokeError(msg)


# ── Steps ────────────────────────────────────────────────────

def step1_health():
    step("1. Health check")
    if GET("/ping").get("status") != "ok":
        fail("/ping did not answer ok")
    ok("Backend is up")


def step2_auth():
    global _token
    step("2. Sign up / log in")
    if INVITE_CODE:
        try:
            _token = POST("/api/auth/signup", {
                "email": SMOKE_EMAIL,
                "password": SMOKE_PASSWORD,
                "invite_code": INVITE_CODE,
            })["token"]
            ok(f"Signed up as {SMOKE_EMAIL}")
            return
        except SmokeError as e:
            print(f"  signup failed ({e}), trying login")
    _token = POST("/api/auth/login", {"email": SMOKE_EMAIL, "password": SMOKE_PASSWORD})["token"]
    ok(f"Logged in as {SMOKE_EMAIL}")


def step3_connect() -> dict:
    step("3. Connect profile")
    for account in GET(ACCOUNTS):
        if account["profile_url"].rstrip("/") == PROFILE_URL.rstrip("/"):
            ok(f"Account #{account['id']} already connected ({account['verification_status']})")
            return account
    account = POST(ACCOUNTS, {"profile_url": PROFILE_URL}, expect=201)
    ok(f"Account #{account['id']} connected: {account['platform']} {account['profile_url']}")
    return account


def step4_verify(account: dict) -> str | None:
    step("4. Start verification")
    print(f"  Put {account['verification_code']} in the bio of {account['profile_url']}")
    data = POST(f"{ACCOUNTS}/verify", {"account_id": account["id"]})
    if "snapshot_id" not in data:
        ok(data.get("message", "nothing to do"))
        return None
    ok(f"Snapshot {data['snapshot_id']} triggered")
    return data["snapshot_id"]


def step5_poll(account_id: int) -> dict:
    step("5. Poll status")
    start = time.time()
    while True:
        status = GET(f"{ACCOUNTS}/verify/status", account_id=account_id)
        elapsed = int(time.time() - start)
        print(f"  [{elapsed:>3}s] {status['verification_status']} (webhook={status['webhook_status']})")
        if status["verification_status"] != "PENDING":
            return status
        if elapsed >= TIMEOUT_SEC:
            fail(f"Still pending after {TIMEOUT_SEC}s")
        time.sleep(POLL_INTERVAL)


def main():
    print(f"\n🔬 Verification smoke test: {BASE_URL}")
    print(f"   PROFILE={PROFILE_URL}  TIMEOUT={TIMEOUT_SEC}s  POLL={POLL_INTERVAL}s\n")

    try:
        step1_health()
        step2_auth()
        account = step3_connect()
        if step4_verify(account) is None:
            return
        final = step5_poll(account["id"])
        if final["verification_status"] == "VERIFIED":
            ok("Account verified")
        else:
            fail(f"Verification finished as {final['verification_status']} (attempts={final['verification_attempts']})")

    except SmokeError as e:
        print(f"\n{'='*60}")
        print(f"  ❌ FAIL: {e}")
        print(f"{'='*60}\n")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\n\n  ⏹ Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    main()
