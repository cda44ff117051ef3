import base64
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import requests

POST_PATCH = "form_gateway.proxy.routes_netlify.requests.post"
ZIP_BYTES = b"PK\x03\x04fake-zip"
ZIP_B64 = base64.b64encode(ZIP_BYTES).decode("ascii")


def _query(location):
    return {key: values[0] for key, values in parse_qs(urlparse(location).query).items()}


class TestOAuthCallback:
    def test_exchanges_code_and_redirects(self, client, http_response):
        token = http_response(200, {"access_token": "netlify-token", "token_type": "Bearer"})
        with patch(POST_PATCH, return_value=token) as mocked:
            response = client.get("/netlify/auth", query_string={"code": "abc", "state": "xyz"})

        assert response.status_code == 302
        location = response.headers["Location"]
        assert location.startswith("https://demo.codeflowcanvas.io")
        assert _query(location) == {
            "auth": "success",
            "provider": "netlify",
            "access_token": "netlify-token",
            "state": "xyz",
        }
        args, kwargs = mocked.call_args
        assert args == ("https://api.netlify.com/oauth/token",)
        assert kwargs["data"] == {
            "grant_type": "authorization_code",
            "code": "abc",
            "client_id": "test-client-id",
            "client_secret": "test-client-secret",
            "redirect_uri": "https://gateway.test/netlify/auth",
        }

    def test_bare_netlify_path_is_also_a_callback(self, client, http_response):
        token = http_response(200, {"access_token": "netlify-token"})
        with patch(POST_PATCH, return_value=token):
            response = client.get("/netlify", query_string={"code": "abc"})
        assert response.status_code == 302
        assert "state" not in _query(response.headers["Location"])

    def test_oauth_error_param(self, client):
        response = client.get("/netlify/auth", query_string={"error": "access_denied"})
        body = response.get_json()
        assert response.status_code == 400
        assert body["message"] == "OAuth Error: access_denied"

    def test_missing_code(self, client):
        response = client.get("/netlify/auth")
        assert response.status_code == 400
        assert response.get_json()["message"] == "Missing authorization code"

    def test_failed_exchange_redirects_with_error(self, client, http_response):
        with patch(POST_PATCH, return_value=http_response(401, {"error": "invalid_grant"})):
            response = client.get("/netlify/auth", query_string={"code": "bad"})
        assert response.status_code == 302
        assert _query(response.headers["Location"]) == {
            "auth": "error",
            "provider": "netlify",
            "error": "token_exchange_failed",
        }

    def test_unreachable_token_endpoint_redirects_with_error(self, client):
        with patch(POST_PATCH, side_effect=requests.ConnectionError("down")):
            response = client.get("/netlify/auth", query_string={"code": "abc"})
        assert response.status_code == 302
        assert _query(response.headers["Location"])["auth"] == "error"


class TestAuthorize:
    def test_redirects_to_netlify(self, client):
        response = client.get("/netlify/authorize")
        location = response.headers["Location"]
        assert response.status_code == 302
        assert location.startswith("https://app.netlify.com/authorize")
        assert _query(location) == {
            "response_type": "code",
            "scope": "public",
            "client_id": "test-client-id",
            "redirect_uri": "https://gateway.test/netlify/auth",
        }

    def test_requires_client_id(self, make_client):
        response = make_client().get("/netlify/authorize")
        assert response.status_code == 500


class TestDeploy:
    def test_creates_site_then_uploads(self, client, http_response):
        created = http_response(201, {"id": "site-123", "url": "https://new.netlify.app"})
        deployed = http_response(200, {"id": "deploy-1", "state": "uploaded"})
        with patch(POST_PATCH, side_effect=[created, deployed]) as mocked:
            response = client.post(
                "/netlify/deploy-site",
                json={"netlifyAccessToken": "token", "zipContents": ZIP_B64},
            )

        body = response.get_json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["siteId"] == "site-123"
        assert body["deploy"]["id"] == "deploy-1"
        assert body["site"]["url"] == "https://new.netlify.app"

        create_call, upload_call = mocked.call_args_list
        assert create_call.args == ("https://api.netlify.com/api/v1/sites",)
        assert create_call.kwargs["headers"]["Authorization"] == "Bearer token"
        assert upload_call.args == ("https://api.netlify.com/api/v1/sites/site-123/deploys",)
        assert upload_call.kwargs["headers"]["Content-Type"] == "application/zip"
        assert upload_call.kwargs["data"] == ZIP_BYTES

    def test_existing_site_skips_creation(self, client, http_response):
        with patch(POST_PATCH, return_value=http_response(200, {"id": "deploy-2"})) as mocked:
            response = client.post(
                "/netlify/deploy-site",
                json={"netlifyAccessToken": "token", "netlifySiteId": "site-9", "zipContents": ZIP_B64},
            )
        body = response.get_json()
        assert response.status_code == 200
        assert body["siteId"] == "site-9"
        assert "site" not in body
        assert mocked.call_count == 1

    def test_default_archive(self, make_client, http_response, tmp_path):
        archive = tmp_path / "site.zip"
        archive.write_bytes(ZIP_BYTES)
        deploy_client = make_client(netlify_default_zip_path=str(archive))
        with patch(POST_PATCH, return_value=http_response(200, {"id": "deploy-3"})) as mocked:
            response = deploy_client.post(
                "/netlify/deploy-site", json={"netlifyAccessToken": "token", "netlifySiteId": "site-9"}
            )
        assert response.status_code == 200
        assert mocked.call_args.kwargs["data"] == ZIP_BYTES

    def test_no_archive_available(self, client):
        response = client.post(
            "/netlify/deploy-site", json={"netlifyAccessToken": "token", "netlifySiteId": "site-9"}
        )
        assert response.status_code == 400

    def test_invalid_base64(self, client):
        response = client.post(
            "/netlify/deploy-site",
            json={"netlifyAccessToken": "token", "netlifySiteId": "site-9", "zipContents": "%%%"},
        )
        assert response.status_code == 400
        assert response.get_json()["message"] == "zipContents must be base64 encoded"

    def test_missing_token(self, client):
        with patch(POST_PATCH) as mocked:
            response = client.post("/netlify/deploy-site", json={"zipContents": ZIP_B64})
        assert response.status_code == 400
        assert response.get_json()["message"] == "No access token provided"
        mocked.assert_not_called()

    def test_site_creation_failure(self, client, http_response):
        with patch(POST_PATCH, return_value=http_response(401, "Unauthorized", content_type="text/plain")):
            response = client.post(
                "/netlify/deploy-site", json={"netlifyAccessToken": "bad", "zipContents": ZIP_B64}
            )
        body = response.get_json()
        assert response.status_code == 502
        assert body["message"] == "Error creating Netlify site"
        assert body["error"] == "Unauthorized"
        assert body["upstreamStatus"] == 401

    def test_upload_failure(self, client, http_response):
        failed = http_response(422, {"message": "bad zip"})
        with patch(POST_PATCH, return_value=failed):
            response = client.post(
                "/netlify/deploy-site",
                json={"netlifyAccessToken": "token", "netlifySiteId": "site-9", "zipContents": ZIP_B64},
            )
        body = response.get_json()
        assert response.status_code == 502
        assert body["message"] == "Error uploading zip to Netlify"
        assert body["upstreamStatus"] == 422

    def test_network_failure(self, client):
        with patch(POST_PATCH, side_effect=requests.ConnectionError("down")):
            response = client.post(
                "/netlify/deploy-site",
                json={"netlifyAccessToken": "token", "netlifySiteId": "site-9", "zipContents": ZIP_B64},
            )
        assert response.status_code == 502
        assert response.get_json()["message"] == "Error deploying to Netlify"
