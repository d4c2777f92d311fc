"""
Tests for PlatformClient with the HTTP layer mocked out.
Run: pytest tests/test_api.py -v
"""
import json
import time
from unittest import mock

import pytest
import requests

from mass_contrib_update.client.api import PlatformClient
from mass_contrib_update.client.models import Site, Workflow
from mass_contrib_update.exceptions import ApiError, AuthenticationError


def response(payload=None, status=200):
    resp = requests.Response()
    resp.status_code = status
    resp._content = b"" if payload is None else json.dumps(payload).encode()
    return resp


class Router:
    """Maps (method, path suffix) to canned responses and records requests."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        for (route_method, suffix), value in self.routes.items():
            if method == route_method and url.split("?")[0].endswith(suffix):
                return value(kwargs) if callable(value) else value
        return response({"error": "not found"}, status=404)


@pytest.fixture
def http():
    return requests.Session()


@pytest.fixture
def client(config, http):
    return PlatformClient(config, http=http)


def route(http, routes):
    router = Router(routes)
    http.request = router
    return router


class TestAuthentication:

    def test_machine_token(self, client, http, monkeypatch):
        for var in ("PANTHEON_MACHINE_TOKEN", "TERMINUS_MACHINE_TOKEN"):
            monkeypatch.delenv(var, raising=False)
        router = route(http, {
            ("POST", "authorize/machine-token"): response(
                {"session": "sess-1", "user_id": "user-1", "expires_at": time.time() + 3600}),
        })

        assert client.authenticate("token-abc") == "user-1"
        assert http.headers["Authorization"] == "Bearer sess-1"
        assert router.requests[0][2]["json"]["machine_token"] == "token-abc"

    def test_machine_token_from_environment(self, client, http, monkeypatch):
        monkeypatch.setenv("PANTHEON_MACHINE_TOKEN", "env-token")
        router = route(http, {
            ("POST", "authorize/machine-token"): response({"session": "s", "user_id": "user-2"}),
        })
        assert client.authenticate() == "user-2"
        assert router.requests[0][2]["json"]["machine_token"] == "env-token"

    def test_rejected_token(self, client, http):
        route(http, {("POST", "authorize/machine-token"): response({"reply": "no"}, status=401)})
        with pytest.raises(AuthenticationError):
            client.authenticate("bad-token")

    def test_session_file(self, config, http, tmp_path, monkeypatch):
        for var in ("PANTHEON_MACHINE_TOKEN", "TERMINUS_MACHINE_TOKEN"):
            monkeypatch.delenv(var, raising=False)
        session_file = tmp_path / "session"
        session_file.write_text(json.dumps(
            {"session": "sess-9", "user_id": "user-9", "expires_at": time.time() + 60}))
        config["config"]["api"]["session_file"] = str(session_file)

        client = PlatformClient(config, http=http)
        assert client.authenticate() == "user-9"
        assert http.headers["Authorization"] == "Bearer sess-9"

    def test_expired_session_file(self, config, http, tmp_path, monkeypatch):
        for var in ("PANTHEON_MACHINE_TOKEN", "TERMINUS_MACHINE_TOKEN"):
            monkeypatch.delenv(var, raising=False)
        session_file = tmp_path / "session"
        session_file.write_text(json.dumps(
            {"session": "old", "user_id": "user-9", "expires_at": time.time() - 60}))
        config["config"]["api"]["session_file"] = str(session_file)

        with pytest.raises(AuthenticationError):
            PlatformClient(config, http=http).authenticate()

    def test_no_credentials(self, config, http, tmp_path, monkeypatch):
        for var in ("PANTHEON_MACHINE_TOKEN", "TERMINUS_MACHINE_TOKEN"):
            monkeypatch.delenv(var, raising=False)
        config["config"]["api"]["session_file"] = str(tmp_path / "missing")
        with pytest.raises(AuthenticationError):
            PlatformClient(config, http=http).authenticate()


class TestSites:

    def test_team_and_organization_memberships(self, client, http):
        client.user_id = "user-1"
        route(http, {
            ("GET", "users/user-1/memberships/sites"): response([
                {"id": "m1", "site": {"id": "s1", "name": "alpha", "owner": "user-1", "framework": "drupal"}},
            ]),
            ("GET", "users/user-1/memberships/organizations"): response([
                {"id": "om1", "organization": {"id": "org-1", "profile": {"name": "Acme"}}},
            ]),
            ("GET", "organizations/org-1/memberships/sites"): response([
                {"id": "m2", "site": {"id": "s1", "name": "alpha", "owner": "user-1", "framework": "drupal"}},
                {"id": "m3", "site": {"id": "s2", "name": "beta", "owner": "user-2", "framework": "drupal8"}},
            ]),
        })

        sites = {site.name: site for site in client.get_sites()}

        assert set(sites) == {"alpha", "beta"}
        assert sites["alpha"].memberships == [
            {"id": "user-1", "name": "Team", "type": "team"},
            {"id": "org-1", "name": "Acme", "type": "organization"},
        ]
        assert sites["beta"].memberships == [{"id": "org-1", "name": "Acme", "type": "organization"}]
        assert sites["beta"].framework == "drupal8"

    def test_paging(self, client, http, config):
        client.user_id = "user-1"
        client.page_limit = 2
        pages = {
            None: [{"id": "m1", "site": {"id": "s1", "name": "a"}},
                   {"id": "m2", "site": {"id": "s2", "name": "b"}}],
            "m2": [{"id": "m3", "site": {"id": "s3", "name": "c"}}],
        }
        route(http, {
            ("GET", "users/user-1/memberships/sites"): lambda kwargs: response(
                pages[kwargs["params"].get("start")]),
            ("GET", "users/user-1/memberships/organizations"): response([]),
        })

        assert sorted(site.name for site in client.get_sites()) == ["a", "b", "c"]

    def test_requires_authentication(self, client):
        with pytest.raises(AuthenticationError):
            client.get_sites()


class TestEnvironmentsAndWorkflows:

    @pytest.fixture
    def site(self):
        return Site(id="s1", name="alpha")

    def test_environments(self, client, http, site):
        route(http, {
            ("GET", "sites/s1/environments"): response({
                "dev": {"on_server_development": True},
                "live": {"on_server_development": False},
            }),
        })
        environments = client.get_environments(site)
        assert environments["dev"].connection_mode == "sftp"
        assert environments["live"].connection_mode == "git"

    def test_http_error_raises_api_error(self, client, http, site):
        route(http, {("GET", "sites/s1/environments"): response({"error": "gone"}, status=500)})
        with pytest.raises(ApiError) as excinfo:
            client.get_environments(site)
        assert excinfo.value.status_code == 500

    def test_connection_error_raises_api_error(self, client, http, site):
        http.request = mock.Mock(side_effect=requests.ConnectionError("unreachable"))
        with pytest.raises(ApiError):
            client.get_features(site)

    def test_backup_workflow(self, client, http, site):
        router = route(http, {
            ("POST", "sites/s1/environments/dev/workflows"): response(
                {"id": "wf-1", "type": "do_export", "result": None}),
        })
        workflow = client.create_backup(site, "dev", keep_for_days=30)
        body = router.requests[0][2]["json"]
        assert body["type"] == "do_export"
        assert body["params"]["code"] and body["params"]["database"] and body["params"]["files"]
        assert body["params"]["ttl"] == 30 * 86400
        assert workflow.id == "wf-1" and not workflow.is_finished

    def test_create_multidev_workflow(self, client, http, site):
        router = route(http, {
            ("POST", "sites/s1/workflows"): response({"id": "wf-2", "type": "create_cloud_development_environment"}),
        })
        client.create_multidev(site, "mcu", "dev")
        body = router.requests[0][2]["json"]
        assert body["type"] == "create_cloud_development_environment"
        assert body["params"]["environment_id"] == "mcu"
        assert body["params"]["deploy"]["clone_database"]["from_environment"] == "dev"

    def test_connection_mode_workflow(self, client, http, site):
        router = route(http, {
            ("POST", "sites/s1/environments/mcu/workflows"): response({"id": "wf-3"}),
        })
        client.change_connection_mode(site, "mcu", "sftp")
        client.change_connection_mode(site, "mcu", "git")
        types = [req[2]["json"]["type"] for req in router.requests]
        assert types == ["enable_on_server_development", "disable_on_server_development"]

    def test_poll_workflow(self, client, http, site):
        route(http, {
            ("GET", "sites/s1/workflows/wf-1"): response(
                {"id": "wf-1", "result": "succeeded", "finished_at": 1.0}),
        })
        workflow = client.get_workflow(Workflow(id="wf-1", site_id="s1"))
        assert workflow.is_successful

    def test_wake(self, client, site):
        with mock.patch("mass_contrib_update.client.api.requests.get",
                        return_value=response(None, status=200)) as get:
            assert client.wake(site, "dev") is True
        assert get.call_args[0][0] == "https://dev-alpha.pantheonsite.io/pantheon_healthcheck"

    def test_wake_sends_no_api_session(self, client, http, site):
        http.headers["Authorization"] = "Bearer sess-1"
        http.request = mock.Mock(side_effect=AssertionError("wake must not use the API session"))
        with mock.patch("mass_contrib_update.client.api.requests.get",
                        return_value=response(None, status=200)) as get:
            client.wake(site, "dev")
        headers = get.call_args[1].get("headers") or {}
        assert "Authorization" not in headers
        assert "sess-1" not in json.dumps(get.call_args[1])

    def test_wake_failure_is_not_fatal(self, client, site):
        with mock.patch("mass_contrib_update.client.api.requests.get",
                        side_effect=requests.Timeout("slow")):
            assert client.wake(site, "dev") is False

    @pytest.mark.parametrize("payload", [None, {"type": "do_export"}, []])
    def test_workflow_without_id_raises_api_error(self, client, http, site, payload):
        route(http, {("POST", "sites/s1/environments/dev/workflows"): response(payload)})
        with pytest.raises(ApiError):
            client.create_backup(site, "dev", keep_for_days=30)
