#!/usr/bin/env python3
"""Command-line runner for Palette Cut: sample a video into a color ribbon."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
import time
from pathlib import Path
from typing import Dict, List, Optional

import requests

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from src.pipeline import (  # noqa: E402
    Analyzer,
    AnalyzerConfig,
    ClustererConfig,
    SamplerConfig,
    SamplingError,
    to_css,
    to_hex,
)
from src.pipeline.analyzer import RibbonReport  # noqa: E402
from src.pipeline.ribbon import write_ribbon  # noqa: E402

SERVICE_URL_ENV = "PALETTE_SERVICE_URL"
STATUS_POLL_SECONDS = 1
HTTP_TIMEOUT_DEFAULT = int(os.getenv("PALETTE_HTTP_TIMEOUT", "600"))
GIB = 1024 ** 3


def _print_progress(percent: int) -> None:
    sys.stderr.write(f"\rProcessing... {percent:3d}%")
    sys.stderr.flush()
    if percent >= 100:
        sys.stderr.write("\n")


def _confirm_prompt(size: int) -> bool:
    if not sys.stdin.isatty():
        return False
    answer = input(
        f"File is {size / GIB:.1f} GiB; software decode may use a lot of memory. Continue? [y/N] "
    )
    return answer.strip().lower() in {"y", "yes"}


def report_to_dict(report: RibbonReport, title: str) -> Dict[str, object]:
    summary: Optional[Dict[str, Dict[str, str]]] = None
    if report.analysis is not None:
        summary = {
            label: {"hex": to_hex(color), "css": to_css(color)}
            for label, color in (
                ("average", report.analysis.average),
                ("dominant", report.analysis.dominant),
                ("least", report.analysis.least),
            )
        }
    return {
        "title": title,
        "backend": report.backend,
        "duration_seconds": report.duration_seconds,
        "sample_count": len(report.colors),
        "failed_frames": report.failed_frames,
        "summary": summary,
        "colors": [to_hex(color) for color in report.colors],
    }


def run_local(args: argparse.Namespace, source: Path) -> Dict[str, object]:
    config = AnalyzerConfig(
        sampler=SamplerConfig(
            sample_count=max(1, args.samples),
            width=max(1, args.size),
            height=max(1, args.size),
            backend=args.backend,
        ),
        cluster=ClustererConfig(threshold=args.threshold),
    )
    confirm = (lambda _size: True) if args.yes else _confirm_prompt
    analyzer = Analyzer(config, confirm_large_file=confirm)
    report = asyncio.run(analyzer.run(source.read_bytes(), _print_progress))
    if args.output:
        if report.colors:
            path = write_ribbon(Path(args.output), report.colors)
            print(f"[OK] Ribbon written to {path}", file=sys.stderr)
        else:
            print("[WARN] No colors sampled; ribbon not written", file=sys.stderr)
    return report_to_dict(report, source.stem or "Untitled")


def run_remote(args: argparse.Namespace, source: Path) -> Dict[str, object]:
    service_url = args.service_url.rstrip("/")
    params = {"filename": source.name, "confirm_large": str(bool(args.yes)).lower(), "background": "true"}
    with source.open("rb") as handle:
        response = requests.post(
            f"{service_url}/analyze",
            params=params,
            data=handle,
            headers={"Content-Type": "application/octet-stream"},
            timeout=args.http_timeout,
        )
    response.raise_for_status()
    job_id = response.json()["job_id"]

    deadline = time.monotonic() + args.http_timeout
    while True:
        status = requests.get(f"{service_url}/status/{job_id}", timeout=args.http_timeout)
        status.raise_for_status()
        payload = status.json()
        _print_progress(int(payload.get("progress", 0)))
        if payload["status"] == "failed":
            raise SamplingError(payload.get("detail") or "Video processing failed.")
        if payload["status"] == "completed":
            break
        if time.monotonic() > deadline:
            raise TimeoutError(f"Job {job_id} did not finish within {args.http_timeout}s")
        time.sleep(STATUS_POLL_SECONDS)

    result = requests.get(f"{service_url}/result/{job_id}", timeout=args.http_timeout)
    result.raise_for_status()
    data = result.json()

    if args.output:
        ribbon = requests.get(f"{service_url}/ribbon/{job_id}.png", timeout=args.http_timeout)
        ribbon.raise_for_status()
        output = Path(args.output)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(ribbon.content)
        print(f"[OK] Ribbon written to {output}", file=sys.stderr)
    return data


def print_summary(report: Dict[str, object]) -> None:
    print(f"{report.get('title')}: {report.get('sample_count')} colors via {report.get('backend')}")
    summary = report.get("summary") or {}
    for label in ("dominant", "average", "least"):
        swatch = summary.get(label) if isinstance(summary, dict) else None
        if swatch:
            print(f"  {label:<9} {swatch['hex']}  {swatch['css']}")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Extract a color ribbon from a video file")
    parser.add_argument("video", type=Path, help="Path to the video file")
    parser.add_argument(
        "--backend",
        choices=["auto", "native", "fallback"],
        default="auto",
        help="Decode backend: native first with software fallback (auto), or force one",
    )
    parser.add_argument("--samples", type=int, default=240, help="Number of frames to sample")
    parser.add_argument("--size", type=int, default=32, help="Edge length of the averaged raster")
    parser.add_argument("--threshold", type=float, default=30.0, help="RGB distance threshold for clustering")
    parser.add_argument("--output", type=str, default=None, help="Write the ribbon as a PNG to this path")
    parser.add_argument("--json", dest="json_path", type=str, default=None, help="Write the full report as JSON")
    parser.add_argument("--yes", action="store_true", help="Confirm software decode of files over 1 GiB")
    parser.add_argument(
        "--service-url",
        type=str,
        default=os.environ.get(SERVICE_URL_ENV),
        help=f"Send the video to a running service instead of processing locally (env {SERVICE_URL_ENV})",
    )
    parser.add_argument("--http-timeout", type=int, default=HTTP_TIMEOUT_DEFAULT, help="HTTP timeout in seconds")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    source: Path = args.video
    if not source.is_file():
        print(f"[ERROR] Video not found: {source}", file=sys.stderr)
        return 1

    try:
        if args.service_url:
            report = run_remote(args, source)
        else:
            report = run_local(args, source)
    except SamplingError as error:
        print(f"\n[ERROR] Failed to process video: {error.message}", file=sys.stderr)
        return 2
    except Exception as error:  # pragma: no cover - integration level logging
        print(f"\n[ERROR] {error}", file=sys.stderr)
        return 1

    print_summary(report)
    if args.json_path:
        Path(args.json_path).write_text(json.dumps(report, indent=2), encoding="utf-8")
    return 0


if __name__ == "__main__":
    sys.exit(main())
