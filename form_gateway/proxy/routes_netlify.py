"""Netlify OAuth callback, authorize redirect and zip deployment."""

import base64
import binascii
import time
from urllib.parse import urlencode

import requests
from flask import jsonify, redirect, request
from pydantic import ValidationError

from .errors import _error
from .exceptions import NetlifyAPIError
from .logger import logger
from .logging_utils import _log_upstream_call
from .models import DeployRequest, first_error_message

NETLIFY_AUTHORIZE_URL = "https://app.netlify.com/authorize"


def _with_query(base_url, params):
    separator = "&" if "?" in base_url else "?"
    return f"{base_url}{separator}{urlencode(params)}"


def _decode_json(response):
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def register_netlify_routes(app, settings):
    api_base = settings.netlify_api_base

    def _netlify_post(path, access_token, **kwargs):
        url = f"{api_base}{path}"
        headers = kwargs.pop("headers", {})
        headers["Authorization"] = f"Bearer {access_token}"
        started_at = time.time()
        response = requests.post(url, headers=headers, timeout=settings.upstream_timeout, **kwargs)
        _log_upstream_call("POST", url, response.status_code, started_at)
        return response

    def _exchange_code_for_token(code):
        token_url = f"{api_base}/oauth/token"
        response = requests.post(
            token_url,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "client_id": settings.netlify_client_id or "",
                "client_secret": settings.netlify_client_secret or "",
                "redirect_uri": settings.netlify_redirect_uri or "",
            },
            timeout=settings.upstream_timeout,
        )
        if not response.ok:
            raise NetlifyAPIError(
                f"Token exchange failed: {response.status_code}", response.status_code, response.text
            )
        token = _decode_json(response)
        if not token.get("access_token"):
            raise NetlifyAPIError("Token exchange returned no access token", response.status_code, response.text)
        return token

    def _load_zip(deploy):
        if deploy.zip_contents:
            try:
                return base64.b64decode(deploy.zip_contents, validate=True), None
            except (binascii.Error, ValueError):
                return None, _error("zipContents must be base64 encoded", status=400)
        if not settings.netlify_default_zip_path:
            return None, _error("No zipContents provided and no default archive configured", status=400)
        try:
            with open(settings.netlify_default_zip_path, "rb") as handle:
                return handle.read(), None
        except OSError as exc:
            logger.error("Cannot read default deploy archive %s: %s", settings.netlify_default_zip_path, exc)
            return None, _error("Default deploy archive is unavailable", status=500)

    def oauth_callback():
        oauth_error = request.args.get("error")
        if oauth_error:
            return _error(f"OAuth Error: {oauth_error}", status=400, error=oauth_error)
        code = request.args.get("code")
        if not code:
            return _error("Missing authorization code", status=400)
        state = request.args.get("state")

        try:
            token = _exchange_code_for_token(code)
        except (NetlifyAPIError, requests.RequestException) as exc:
            logger.warning("Error exchanging Netlify code for token: %s", exc)
            params = {"auth": "error", "provider": "netlify", "error": "token_exchange_failed"}
            return redirect(_with_query(settings.netlify_success_redirect_url, params), code=302)

        params = {"auth": "success", "provider": "netlify", "access_token": token["access_token"]}
        if state:
            params["state"] = state
        return redirect(_with_query(settings.netlify_success_redirect_url, params), code=302)

    app.add_url_rule("/netlify", "netlify_oauth_callback", oauth_callback, methods=["GET"])
    app.add_url_rule("/netlify/auth", "netlify_oauth_auth", oauth_callback, methods=["GET"])

    @app.get("/netlify/authorize")
    def netlify_authorize():
        if not settings.netlify_client_id:
            return _error("Netlify OAuth is not configured", status=500)
        params = {"response_type": "code", "scope": "public", "client_id": settings.netlify_client_id}
        if settings.netlify_redirect_uri:
            params["redirect_uri"] = settings.netlify_redirect_uri
        return redirect(_with_query(NETLIFY_AUTHORIZE_URL, params), code=302)

    @app.post("/netlify/deploy-site")
    def deploy_site():
        body = request.get_json(silent=True)
        if not isinstance(body, dict) or not body.get("netlifyAccessToken"):
            return _error("No access token provided", status=400)
        try:
            deploy = DeployRequest.model_validate(body)
        except ValidationError as exc:
            return _error("Invalid request body", status=400, error=first_error_message(exc))

        zip_contents, zip_error = _load_zip(deploy)
        if zip_error:
            return zip_error

        try:
            site = None
            site_id = deploy.site_id
            if not site_id:
                created = _netlify_post("/api/v1/sites", deploy.access_token, json={})
                if not created.ok:
                    raise NetlifyAPIError("Error creating Netlify site", created.status_code, created.text)
                site = _decode_json(created)
                site_id = site.get("site_id") or site.get("id")
                if not site_id:
                    raise NetlifyAPIError("Netlify returned no site id", created.status_code, created.text)

            uploaded = _netlify_post(
                f"/api/v1/sites/{site_id}/deploys",
                deploy.access_token,
                headers={"Content-Type": "application/zip"},
                data=zip_contents,
            )
            if not uploaded.ok:
                raise NetlifyAPIError("Error uploading zip to Netlify", uploaded.status_code, uploaded.text)
        except NetlifyAPIError as exc:
            logger.warning("%s (status=%s)", exc.message, exc.status_code)
            return _error(exc.message, status=exc.status, error=exc.body, upstreamStatus=exc.status_code)
        except requests.RequestException as exc:
            logger.exception("Error deploying to Netlify.")
            return _error("Error deploying to Netlify", status=502, error=str(exc))

        result = {"success": True, "siteId": site_id, "deploy": _decode_json(uploaded)}
        if site is not None:
            result["site"] = site
        return jsonify(result)
