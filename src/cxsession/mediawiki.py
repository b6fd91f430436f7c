from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

import requests


log = logging.getLogger("cxsession.mediawiki")


class MediaWikiError(RuntimeError):
    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


@dataclass
class MediaWikiClient:
    api_url: str
    user_agent: str
    session: requests.Session

    csrf_token: str | None = None

    def _request(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        params = {"format": "json", "formatversion": 2, **params}
        headers = {"User-Agent": self.user_agent}
        backoff = 1
        badtoken_retry = False
        for attempt in range(5):
            if method == "GET":
                resp = self.session.get(self.api_url, params=params, headers=headers, timeout=30)
            else:
                resp = self.session.post(self.api_url, data=params, headers=headers, timeout=30)
            resp.raise_for_status()
            data = resp.json()
            if "error" not in data:
                return data
            error = data["error"]
            code = str(error.get("code", ""))
            info = str(error.get("info", ""))
            if code == "badtoken" and method == "POST" and "token" in params and not badtoken_retry:
                badtoken_retry = True
                self.csrf_token = self.get_csrf_token()
                params = {**params, "token": self.csrf_token}
                continue
            if code == "ratelimited" or "rate limit" in info.lower():
                if attempt < 4:
                    log.warning("rate limited; backing off %ss", backoff)
                    time.sleep(backoff)
                    backoff *= 2
                    continue
            raise MediaWikiError(f"MediaWiki API error: {error}", code=code or None)
        raise MediaWikiError("MediaWiki API error: exceeded retry attempts")

    def get_login_token(self) -> str:
        data = self._request("GET", {"action": "query", "meta": "tokens", "type": "login"})
        token = data["query"]["tokens"]["logintoken"]
        if not token:
            raise MediaWikiError("login token missing")
        return token

    def login(self, username: str, password: str) -> None:
        token = self.get_login_token()
        data = self._request(
            "POST",
            {
                "action": "login",
                "lgname": username,
                "lgpassword": password,
                "lgtoken": token,
            },
        )
        result = data.get("login", {}).get("result")
        if result != "Success":
            raise MediaWikiError(f"login failed: {result}")
        self.csrf_token = self.get_csrf_token()

    def get_csrf_token(self) -> str:
        data = self._request("GET", {"action": "query", "meta": "tokens"})
        token = data["query"]["tokens"]["csrftoken"]
        if not token:
            raise MediaWikiError("csrf token missing")
        return token

    def post_with_token(self, params: dict[str, Any]) -> dict[str, Any]:
        if not self.csrf_token:
            self.csrf_token = self.get_csrf_token()
        return self._request("POST", {**params, "token": self.csrf_token})

    def get_page_revision_id(self, title: str) -> tuple[int, str]:
        data = self._request(
            "GET",
            {
                "action": "query",
                "prop": "revisions",
                "titles": title,
                "rvprop": "ids",
            },
        )
        page = data["query"]["pages"][0]
        if page.get("missing"):
            raise MediaWikiError(f"page missing: {title}")
        normalized_title = page.get("title", title)
        revisions = page.get("revisions") or []
        if not revisions:
            raise MediaWikiError(f"no revisions for {title}")
        rev = revisions[0]
        return int(rev["revid"]), normalized_title

    def fetch_translation(self, translation_id: int) -> dict[str, Any]:
        data = self._request(
            "GET",
            {
                "action": "query",
                "list": "contenttranslation",
                "translationid": translation_id,
            },
        )
        translation = data.get("query", {}).get("contenttranslation", {}).get("translation")
        if not translation:
            raise MediaWikiError(f"translation not found: {translation_id}")
        return translation

    def cx_save(self, params: dict[str, Any]) -> dict[str, Any]:
        data = self.post_with_token({"action": "cxsave", **params})
        result = data.get("cxsave")
        if not isinstance(result, dict):
            raise MediaWikiError(f"cxsave failed: {data}")
        return data

    def cx_publish_section(self, params: dict[str, Any]) -> dict[str, Any]:
        data = self.post_with_token({"action": "cxpublishsection", **params})
        result = data.get("cxpublishsection", {})
        if result.get("result") != "success":
            edit = result.get("edit") or {}
            code = edit.get("code") or result.get("result") or "publishfailed"
            raise MediaWikiError(f"cxpublishsection failed: {result}", code=str(code))
        return result

    def link_titles(
        self, from_site: str, from_title: str, to_site: str, to_title: str
    ) -> dict[str, Any]:
        return self.post_with_token(
            {
                "action": "wblinktitles",
                "fromsite": from_site,
                "fromtitle": from_title,
                "tosite": to_site,
                "totitle": to_title,
            }
        )


def build_client(api_url: str, user_agent: str) -> MediaWikiClient:
    return MediaWikiClient(api_url, user_agent, requests.Session())
