from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
from typing import Any, Sequence

from .dom import HtmlDocument
from .locate import find_element_by_selector, locate
from .locator_generator import build_locator_path, generate_relative_candidates, generate_selector_candidates
from .models import EventRecord, SelectorInfo
from .selector_rules import infer_selector_type
from .settings import ReplayTimings

logger = logging.getLogger("locatorkit.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="locatorkit", description="Locator synthesis and replay for recorded web steps.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    candidates = commands.add_parser("candidates", help="Print ranked selector candidates for an element")
    candidates.add_argument("file", type=Path, help="HTML file to analyse")
    candidates.add_argument("--target", required=True, help="CSS selector of the target element")
    candidates.add_argument("--scope", help="CSS selector of a scope element for relative candidates")

    locate_cmd = commands.add_parser("locate", help="Resolve a selector against an HTML file")
    locate_cmd.add_argument("file", type=Path, help="HTML file to search")
    locate_cmd.add_argument("--selector", required=True, help="Encoded selector (css, xpath= or text=)")
    locate_cmd.add_argument("--type", dest="selector_type", help="Selector type, inferred when omitted")

    replay = commands.add_parser("replay", help="Replay recorded events in Chromium")
    replay.add_argument("url", help="Start URL")
    replay.add_argument("events", type=Path, help="JSON file holding a list of recorded events")
    replay.add_argument("--headed", action="store_true", help="Show the browser window")
    return parser


def _load_document(path: Path) -> HtmlDocument:
    return HtmlDocument.from_html(path.read_text(encoding="utf-8"), path.resolve().as_uri())


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _run_candidates(args: argparse.Namespace) -> int:
    document = _load_document(args.file)
    target = find_element_by_selector(document, args.target, "css")
    if target is None:
        logger.error("Target %r not found in %s", args.target, args.file)
        return 1
    if not args.scope:
        _print_json([candidate.to_dict() for candidate in generate_selector_candidates(document, target)])
        return 0

    scope = find_element_by_selector(document, args.scope, "css")
    if scope is None:
        logger.error("Scope %r not found in %s", args.scope, args.file)
        return 1
    path = build_locator_path(document, scope, target)
    _print_json(
        {
            "candidates": [item.to_dict() for item in generate_relative_candidates(document, scope, target)],
            "locatorPath": path.to_list() if path else None,
        }
    )
    return 0


def _run_locate(args: argparse.Namespace) -> int:
    document = _load_document(args.file)
    info = SelectorInfo(selector=args.selector, type=args.selector_type or infer_selector_type(args.selector))
    result = locate(document, info, timeout=0)
    if result is None:
        logger.error("No element matches %s", args.selector)
        return 1
    element = result.element
    _print_json({"tag": str(element.tag).lower(), "text": document.first_text_line(element)})
    return 0


def _read_events(path: Path) -> list[EventRecord]:
    payload = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(payload, dict):
        payload = payload.get("events") or []
    return [EventRecord.from_dict(item) for item in payload]


def _run_replay(args: argparse.Namespace) -> int:
    from .browser_manager import BrowserManager

    events = _read_events(args.events)
    outcome: dict[str, Any] = {}

    manager = BrowserManager(
        lambda message: logger.info("%s", message),
        on_step_result=lambda result: print(json.dumps(result.to_dict()), flush=True),
        on_finished=lambda total: outcome.update(finished=total),
        on_aborted=lambda reason: outcome.update(aborted=reason),
        timings=ReplayTimings.from_env(),
        headless=not args.headed,
    )
    manager.start()
    manager.launch(args.url)
    manager.replay(events)
    try:
        manager.wait_until_idle()
    except KeyboardInterrupt:
        manager.abort()
        manager.wait_until_idle(5)
    finally:
        manager.shutdown()
    return 0 if "finished" in outcome else 1


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.command == "candidates":
        return _run_candidates(args)
    if args.command == "locate":
        return _run_locate(args)
    return _run_replay(args)


if __name__ == "__main__":
    sys.exit(main())
