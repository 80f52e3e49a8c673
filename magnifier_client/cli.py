"""Command line entry point: resolve, view or export the image under a point of a page snapshot."""
from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

from image_resolver.geometry_probe import PageSnapshot, SnapshotError, load_snapshot
from magnifier_export.results import ExportFailure, ExportResult

from magnifier_client.app import MagnifierSession
from magnifier_client.logging_utils import configure_logging
from magnifier_client.settings import MagnifierSettings, is_debug_enabled, load_settings

# Seconds allowed on top of the fetch timeout for decoding the displayed image.
IMAGE_LOAD_GRACE = 5.0


def _print_step(message: str) -> None:
    print(f"[magnifier] {message}", file=sys.stderr)


def _fail(message: str, *, code: int = 1) -> int:
    print(f"[magnifier] ERROR: {message}", file=sys.stderr)
    return code


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="modern-magnifier",
        description="Find and magnify the image under a point of a page snapshot.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--settings", type=Path, default=None, help="Path to settings.json")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def _add_point_args(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("snapshot", type=Path, help="Page snapshot JSON file")
        sub.add_argument("x", type=float, help="Viewport X coordinate")
        sub.add_argument("y", type=float, help="Viewport Y coordinate")

    resolve = subparsers.add_parser("resolve", help="Print the best image URL under the point")
    _add_point_args(resolve)
    resolve.add_argument("--json", action="store_true", help="Print every ranked candidate as JSON")

    view = subparsers.add_parser("view", help="Open the magnifier overlay for the image under the point")
    _add_point_args(view)

    export = subparsers.add_parser("export", help="Write the image under the point as PNG")
    _add_point_args(export)
    export.add_argument("--output", "-o", type=Path, required=True, help="Destination PNG file")
    return parser


def _run_resolve(session: MagnifierSession, args: argparse.Namespace) -> int:
    ranked = session.rank_at(args.x, args.y)
    if args.json:
        payload = [
            {"url": candidate.url, "score": candidate.score, "node": candidate.source_node.node_id}
            for candidate in ranked
        ]
        print(json.dumps(payload, indent=2))
    elif ranked:
        print(ranked[0].url)
    if not ranked:
        _print_step(f"No image found at ({args.x:g}, {args.y:g}).")
        return 1
    return 0


def _ensure_gui_application(*, headless: bool):
    from PyQt6.QtWidgets import QApplication

    if headless:
        os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    app = QApplication.instance()
    if app is None:
        app = QApplication([sys.argv[0]])
    return app


def _run_export(snapshot: PageSnapshot, settings: MagnifierSettings, args: argparse.Namespace) -> int:
    _ensure_gui_application(headless=True)
    session = MagnifierSession(snapshot, settings)
    try:
        if not session.open_at(args.x, args.y):
            result = ExportResult.failed(ExportFailure.NO_CANDIDATE_FOUND, f"no image at ({args.x:g}, {args.y:g})")
        else:
            displayed = session.wait_for_image(timeout=settings.fetch_timeout + IMAGE_LOAD_GRACE)
            if displayed is None:
                result = ExportResult.failed(ExportFailure.IMAGE_NOT_READY, "overlay closed before the image loaded")
            else:
                result = asyncio.run(session.exporter.export_pixels(displayed))
        if not result.ok:
            failure = result.failure.value if result.failure else "empty"
            return _fail(f"Export failed ({failure}): {result.detail}")
        try:
            args.output.write_bytes(result.data or b"")
        except OSError as exc:
            return _fail(f"Unable to write {args.output}: {exc}")
        _print_step(f"Wrote {args.output} ({len(result.data or b'')} bytes, tier {result.tier}).")
        return 0
    finally:
        session.shutdown()


def _run_view(snapshot: PageSnapshot, settings: MagnifierSettings, args: argparse.Namespace) -> int:
    app = _ensure_gui_application(headless=False)

    from magnifier_client.export_worker import ExportWorker
    from magnifier_controller.overlay_window import MagnifierOverlay
    from magnifier_export.sinks import QtClipboardSink

    worker = ExportWorker()
    clipboard = QtClipboardSink()
    worker.clipboard_payload.connect(clipboard.put_png)
    worker.start()

    holder = {}

    def _build_view(controller, displayed):
        overlay = MagnifierOverlay(controller, displayed.image)
        overlay.copy_requested.connect(lambda: worker.submit(holder["session"].copy_current))
        overlay.save_requested.connect(lambda: worker.submit(holder["session"].save_current))
        worker.notice.connect(overlay.show_notice)
        worker.image_loaded.connect(overlay.set_image)
        overlay.showFullScreen()
        overlay.activateWindow()
        return overlay

    session = MagnifierSession(
        snapshot,
        settings,
        clipboard=worker,
        notify=worker.notice.emit,
        view_factory=_build_view,
        worker=worker,
    )
    holder["session"] = session
    session.controller.add_listener(lambda state: app.quit() if not state.is_open else None)
    try:
        if not session.open_at(args.x, args.y):
            return _fail(f"No image found at ({args.x:g}, {args.y:g}).")
        return app.exec()
    finally:
        session.shutdown()
        worker.stop()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    settings = load_settings(args.settings)
    configure_logging(debug_enabled=args.debug or is_debug_enabled(), retention=settings.log_retention)

    try:
        snapshot = load_snapshot(args.snapshot)
    except SnapshotError as exc:
        return _fail(str(exc))

    if args.command == "resolve":
        session = MagnifierSession(snapshot, settings)
        try:
            return _run_resolve(session, args)
        finally:
            session.shutdown()
    if args.command == "export":
        return _run_export(snapshot, settings, args)
    return _run_view(snapshot, settings, args)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
