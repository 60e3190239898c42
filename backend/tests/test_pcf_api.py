"""
HTTP surface tests through FastAPI's TestClient.
"""


def _evaluate(client, user="user-a", domain="shop.example", ip="203.0.113.10"):
    return client.post("/evaluate_login", json={"user_token": user, "domain": domain, "login_ip": ip})


def test_root(sync_client):
    response = sync_client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_health(sync_client):
    response = sync_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "store": "memory"}


class TestEvaluateLoginEndpoint:
    def test_body_and_headers(self, sync_client):
        response = _evaluate(sync_client)
        assert response.status_code == 200
        body = response.json()
        assert body["domain"] == "shop.example"
        assert body["run_sandbox"] is True
        assert response.headers["X-PCF-Login-Event-Id"] == body["login_event_id"]
        assert response.headers["X-PCF-Domain-Salt"] == body["domain_salt"]
        assert response.headers["X-PCF-Run-Sandbox"] == "1"

    def test_sandbox_disabled_header(self, sync_client, test_settings):
        test_settings.run_sandbox = False
        response = _evaluate(sync_client)
        assert response.headers["X-PCF-Run-Sandbox"] == "0"
        assert response.json()["run_sandbox"] is False

    def test_missing_domain(self, sync_client):
        response = sync_client.post("/evaluate_login", json={"user_token": "user-a"})
        assert response.status_code == 400
        assert response.json() == {
            "detail": {"error": "invalid_input", "message": "user_token and domain are required"}
        }


class TestReportEndpoint:
    def test_report_scores_and_notifies(self, sync_client, recording_sink, sample_security_signal):
        login = _evaluate(sync_client).json()
        response = sync_client.post(
            "/report_fp",
            json={
                "login_event_id": login["login_event_id"],
                "domain": "shop.example",
                "safe_fp": "fp-abc",
                "security_signal": sample_security_signal,
                "local_classification": {"is_bot": False, "trust_score": 80},
            },
        )
        assert response.status_code == 200
        body = response.json()
        assert body["accepted"] is True
        assert abs(body["risk_score"] - 0.15) < 1e-9
        assert body["message"] == "sandbox report stored"

        assert len(recording_sink.received) == 1
        note = recording_sink.received[0]
        assert note.login_event_id == login["login_event_id"]
        assert note.risk_score == body["risk_score"]

    def test_unknown_event(self, sync_client, recording_sink):
        response = sync_client.post("/report_fp", json={"login_event_id": "nope", "safe_fp": "fp-abc"})
        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error"] == "unknown_login_event"
        assert detail["login_event_id"] == "nope"
        assert recording_sink.received == []

    def test_missing_event_id(self, sync_client):
        response = sync_client.post("/report_fp", json={"safe_fp": "fp-abc"})
        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "invalid_input"

    def test_trust_score_out_of_range(self, sync_client):
        login = _evaluate(sync_client).json()
        response = sync_client.post(
            "/report_fp",
            json={
                "login_event_id": login["login_event_id"],
                "local_classification": {"is_bot": False, "trust_score": 150},
            },
        )
        assert response.status_code == 422
        assert isinstance(response.json()["detail"], list)

    def test_overflowing_browser_version(self, sync_client, recording_sink, memory_store):
        login = _evaluate(sync_client).json()
        body = (
            '{"login_event_id": "' + login["login_event_id"] + '", "safe_fp": "fp-abc", '
            '"security_signal": {"browser_major": 1e400, "os_major": "Windows 10", "security_version": "v1.0.0"}}'
        )
        response = sync_client.post("/report_fp", content=body, headers={"Content-Type": "application/json"})
        assert response.status_code == 200
        assert memory_store.counts()["classification_records"] == 1
        assert recording_sink.received[0].security_flags["outdated_browser"] is False

    def test_string_browser_version_accepted(self, sync_client, recording_sink):
        login = _evaluate(sync_client).json()
        response = sync_client.post(
            "/report_fp",
            json={
                "login_event_id": login["login_event_id"],
                "security_signal": {"browser_major": "Chrome 95", "os_major": "Windows XP"},
            },
        )
        assert response.status_code == 200
        flags = recording_sink.received[0].security_flags
        assert flags == {"outdated_browser": True, "outdated_os": True, "agent_outdated": True}


class TestRecentNotifications:
    def test_lists_dispatched_notifications(self, sync_client):
        for user in ("user-a", "user-b"):
            login = _evaluate(sync_client, user=user).json()
            sync_client.post("/report_fp", json={"login_event_id": login["login_event_id"]})
        response = sync_client.get("/notifications/recent")
        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert [n["user_token"] for n in body["notifications"]] == ["user-a", "user-b"]

    def test_limit(self, sync_client):
        for user in ("user-a", "user-b", "user-c"):
            login = _evaluate(sync_client, user=user).json()
            sync_client.post("/report_fp", json={"login_event_id": login["login_event_id"]})
        body = sync_client.get("/notifications/recent", params={"limit": 1}).json()
        assert [n["user_token"] for n in body["notifications"]] == ["user-c"]

    def test_limit_bounds(self, sync_client):
        assert sync_client.get("/notifications/recent", params={"limit": 0}).status_code == 422


def test_store_backed_routes_run_in_threadpool():
    import inspect

    from pcf.api import pcf as pcf_routes

    assert not inspect.iscoroutinefunction(pcf_routes.evaluate_login)
    assert not inspect.iscoroutinefunction(pcf_routes.report_fp)
