from __future__ import annotations

import argparse
import json
import logging
from typing import Any

from .config import Config, load_config
from .engines.google_v3 import GoogleTranslateV3
from .logging import attach_file_logging, configure_logging
from .mediawiki import MediaWikiClient, build_client
from .metrics import progress_ratio, unmodified_ratio
from .scheduling import EventLoop
from .sections import TargetDocument, html_to_text
from .session import open_session
from .tracker import TranslationTracker
from .translation import Translation, load_draft_file, parse_translation_units

log = logging.getLogger("cxsession.cli")


def _print(data: Any) -> None:
    print(json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False))


def track_draft(translation: Translation, cfg: Config) -> TranslationTracker:
    """Replay a draft's translated sections through a tracker."""
    document = TargetDocument()
    tracker = TranslationTracker(translation, document, EventLoop(), cfg)
    tracker.init()
    for sub in translation.iter_sub_sections():
        if sub.is_translated:
            document.upsert(sub.id, sub.translated_content, sub.mt_provider)
            translation.notify_section_change(sub.id)
    tracker.process_change_queue()
    tracker.process_validation_queue()
    tracker.cancel()
    return tracker


def section_report(tracker: TranslationTracker) -> list[dict[str, Any]]:
    rows = []
    for number, state in sorted(tracker.sections.items()):
        section = tracker.document.get_by_number(number)
        rows.append(
            {
                "section": number,
                "provider": state.current_mt_provider,
                "progress": round(state.translation_progress_percentage, 3),
                "unmodified": round(state.unmodified_percentage, 3),
                "warnings": [r.title for r in (section.lint_results or [])] if section else [],
            }
        )
    return rows


def _connect(cfg: Config) -> MediaWikiClient:
    client = build_client(cfg.mw_api_url, cfg.mw_user_agent)
    if cfg.mw_username and cfg.mw_password:
        client.login(cfg.mw_username, cfg.mw_password)
    else:
        log.warning("MW_USERNAME/MW_PASSWORD not set; saving requires a logged-in user")
    return client


def _load_translation(args: argparse.Namespace, client: MediaWikiClient | None) -> Translation:
    translation = load_draft_file(args.draft)
    if getattr(args, "sandbox", False):
        translation.is_sandbox = True
    translation_id = getattr(args, "translation_id", None) or translation.translation_id
    if client is not None and translation_id and not translation.saved_translation_units:
        stored = client.fetch_translation(int(translation_id))
        translation.saved_translation_units = parse_translation_units(
            stored.get("translationUnits")
        )
        log.info(
            "restored %s saved translation units for %s",
            len(translation.saved_translation_units),
            translation.target_title,
        )
    return translation


def cmd_metrics(args: argparse.Namespace, cfg: Config) -> int:
    source = html_to_text(args.source)
    current = html_to_text(args.current)
    out: dict[str, Any] = {"progress": progress_ratio(source, current, args.lang)}
    if args.baseline is not None:
        baseline = html_to_text(args.baseline)
        out["unmodified"] = unmodified_ratio(baseline, current, args.lang)
        out["unmodified_over_threshold"] = out["unmodified"] > cfg.mt_abuse_threshold
    _print(out)
    return 0


def cmd_progress(args: argparse.Namespace, cfg: Config) -> int:
    translation = _load_translation(args, None)
    tracker = track_draft(translation, cfg)
    _print({"progress": tracker.get_translation_progress(), "sections": section_report(tracker)})
    return 0


def cmd_translate(args: argparse.Namespace, cfg: Config) -> int:
    client = _connect(cfg)
    translation = _load_translation(args, client)
    engine = GoogleTranslateV3(
        project_id=cfg.gcp_project_id or "",
        location=cfg.gcp_location,
        credentials_path=cfg.gcp_credentials_path,
    )
    session = open_session(cfg, translation, client)
    try:
        session.start()
        numbers = args.section or [sub.id for sub in translation.iter_sub_sections()]
        for number in numbers:
            session.translate_section(number, engine.name, engine)
        feedback = session.save_queue.save_now()
        _print(
            {
                "progress": session.progress(),
                "saved": feedback is None,
                "error": feedback.text if feedback else None,
            }
        )
        return 0 if feedback is None else 1
    finally:
        session.close()


def cmd_publish(args: argparse.Namespace, cfg: Config) -> int:
    client = _connect(cfg)
    translation = _load_translation(args, client)
    session = open_session(cfg, translation, client)
    try:
        session.start()
        for sub in translation.iter_sub_sections():
            if sub.is_translated:
                session.update_section(sub.id)
        result = session.publish(args.section)
        out: dict[str, Any] = {
            "published": result.succeeded,
            "target_title": result.target_title,
            "target_url": result.target_url,
            "section_translations": [
                {
                    "base_section_id": item.base_section_id,
                    "source_section_title": item.source_section_title,
                    "target_section_title": item.target_section_title,
                }
                for item in result.section_translations
            ],
        }
        if result.feedback is not None:
            out["error"] = {
                "status": result.feedback.status,
                "text": result.feedback.text,
                "recoverable": result.feedback.recoverable,
            }
        _print(out)
        return 0 if result.succeeded else 1
    finally:
        session.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cxsession")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("metrics", help="score a single translated text")
    p.add_argument("source", help="source text or HTML")
    p.add_argument("current", help="current translation text or HTML")
    p.add_argument("--baseline", default=None, help="unmodified machine translation")
    p.add_argument("--lang", required=True, help="target language code (e.g., sr)")
    p.set_defaults(func=cmd_metrics, offline=True)

    p = sub.add_parser("progress", help="report progress of a draft file")
    p.add_argument("--draft", required=True)
    p.set_defaults(func=cmd_progress, offline=True)

    p = sub.add_parser("translate", help="machine translate sections and save the draft")
    p.add_argument("--draft", required=True)
    p.add_argument("--section", type=int, action="append", default=None)
    p.add_argument("--translation-id", type=int, default=None)
    p.set_defaults(func=cmd_translate, offline=False)

    p = sub.add_parser("publish", help="save and publish a draft")
    p.add_argument("--draft", required=True)
    p.add_argument("--section", type=int, default=None, help="page section id; default lead")
    p.add_argument("--translation-id", type=int, default=None)
    p.add_argument("--sandbox", action="store_true")
    p.set_defaults(func=cmd_publish, offline=False)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()
    cfg = load_config(require_api=not args.offline)
    if cfg.log_file:
        attach_file_logging(cfg.log_file)
    return args.func(args, cfg)


if __name__ == "__main__":
    raise SystemExit(main())
