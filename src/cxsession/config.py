from __future__ import annotations

import os
import json
from dataclasses import dataclass


@dataclass(frozen=True)
class Config:
    mw_api_url: str
    mw_username: str | None = None
    mw_password: str | None = None
    mw_user_agent: str = "CXSession/0.1"
    mw_article_path: str | None = None

    wiki_id: str | None = None
    translate_in_target: bool = True
    wikibase_api_url: str = "https://www.wikidata.org/w/api.php"

    change_debounce_seconds: float = 0.5
    save_throttle_seconds: float = 15.0
    save_retry_delay_seconds: float = 60.0
    save_retry_backoff: str = "linear"
    save_max_failures: int = 5
    save_timeout_seconds: float = 60.0
    validate_every: int = 5

    mt_abuse_threshold: float = 0.75
    mt_abuse_min_tokens: int = 10
    user_mt_providers: tuple[str, ...] = ("source", "scratch")

    gcp_project_id: str | None = None
    gcp_location: str = "global"
    gcp_credentials_path: str | None = None
    log_file: str | None = None


BACKOFF_POLICIES = ("linear", "exponential")


def article_path_for(api_url: str) -> str:
    base = api_url.strip()
    if base.endswith("/api.php"):
        base = base[: -len("/api.php")]
    if base.endswith("/w"):
        base = base[: -len("/w")]
    return f"{base.rstrip('/')}/wiki/$1"


def load_config(require_api: bool = True) -> Config:
    def _load_user_providers() -> tuple[str, ...]:
        raw = os.getenv("CX_USER_MT_PROVIDERS")
        if not raw:
            return ("source", "scratch")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise RuntimeError("CX_USER_MT_PROVIDERS must be valid JSON") from exc
        if not isinstance(data, list) or not data:
            raise RuntimeError("CX_USER_MT_PROVIDERS must be a non-empty JSON array")
        return tuple(str(item) for item in data)

    def _load_backoff() -> str:
        value = os.getenv("CX_SAVE_RETRY_BACKOFF", "linear").strip().lower()
        if value not in BACKOFF_POLICIES:
            raise RuntimeError(
                f"CX_SAVE_RETRY_BACKOFF must be one of: {', '.join(BACKOFF_POLICIES)}"
            )
        return value

    def _load_threshold() -> float:
        value = float(os.getenv("CX_MT_ABUSE_THRESHOLD", "0.75"))
        if not 0 <= value <= 1:
            raise RuntimeError("CX_MT_ABUSE_THRESHOLD must be between 0 and 1")
        return value

    def req(name: str) -> str:
        value = os.getenv(name)
        if not value:
            raise RuntimeError(f"Missing required env var: {name}")
        return value

    api_url = req("MW_API_URL") if require_api else os.getenv("MW_API_URL", "")
    cfg = Config(
        mw_api_url=api_url,
        mw_username=os.getenv("MW_USERNAME"),
        mw_password=os.getenv("MW_PASSWORD"),
        mw_user_agent=os.getenv("MW_USER_AGENT", "CXSession/0.1"),
        mw_article_path=os.getenv("MW_ARTICLE_PATH")
        or (article_path_for(api_url) if api_url else None),
        wiki_id=os.getenv("CX_WIKI_ID"),
        translate_in_target=os.getenv("CX_TRANSLATE_IN_TARGET", "1")
        not in ("0", "false", "False"),
        wikibase_api_url=os.getenv(
            "CX_WIKIBASE_API_URL", "https://www.wikidata.org/w/api.php"
        ),
        change_debounce_seconds=int(os.getenv("CX_CHANGE_DEBOUNCE_MS", "500")) / 1000,
        save_throttle_seconds=float(os.getenv("CX_SAVE_THROTTLE_SECONDS", "15")),
        save_retry_delay_seconds=float(os.getenv("CX_SAVE_RETRY_DELAY_SECONDS", "60")),
        save_retry_backoff=_load_backoff(),
        save_max_failures=int(os.getenv("CX_SAVE_MAX_FAILURES", "5")),
        save_timeout_seconds=float(os.getenv("CX_SAVE_TIMEOUT_SECONDS", "60")),
        validate_every=int(os.getenv("CX_VALIDATE_EVERY", "5")),
        mt_abuse_threshold=_load_threshold(),
        mt_abuse_min_tokens=int(os.getenv("CX_MT_ABUSE_MIN_TOKENS", "10")),
        user_mt_providers=_load_user_providers(),
        gcp_project_id=os.getenv("GCP_PROJECT_ID"),
        gcp_location=os.getenv("GCP_LOCATION", "global"),
        gcp_credentials_path=os.getenv("GCP_CREDENTIALS_PATH")
        or os.getenv("GCP_CREDENTIALS_JSON"),
        log_file=os.getenv("CX_LOG_FILE"),
    )
    return cfg
