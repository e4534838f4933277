from __future__ import annotations

import argparse
import time
from pathlib import Path
from typing import Any

import httpx


def emit(message: str = "") -> None:
    print(message, flush=True)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Send phrases to a running backend's /translate endpoint, report status codes "
            "and latency, and optionally fetch speech audio for each translation."
        )
    )
    parser.add_argument(
        "phrases",
        nargs="+",
        help="Phrases to translate, one request per phrase",
    )
    parser.add_argument(
        "--base-url",
        default="http://127.0.0.1:8000",
        help="Backend base URL (default: http://127.0.0.1:8000)",
    )
    parser.add_argument("--target", default="es", help="Target language code (default: es)")
    parser.add_argument("--source", default=None, help="Source language code (default: auto)")
    parser.add_argument(
        "--repeat",
        type=int,
        default=1,
        help="Send every phrase this many times, e.g. to observe rate limiting (default: 1)",
    )
    parser.add_argument(
        "--speech-dir",
        type=Path,
        default=None,
        help="If set, fetch /speech audio for each translation and save it here",
    )
    return parser.parse_args()


def translate_once(
    client: httpx.Client,
    base_url: str,
    text: str,
    target: str,
    source: str | None,
) -> tuple[int, dict[str, Any], float]:
    body: dict[str, Any] = {"text": text, "targetLang": target}
    if source:
        body["sourceLang"] = source

    started = time.monotonic()
    response = client.post(f"{base_url}/translate", json=body)
    latency_ms = (time.monotonic() - started) * 1000.0
    try:
        payload = response.json()
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}
    return response.status_code, payload, latency_ms


def fetch_speech(
    client: httpx.Client,
    base_url: str,
    text: str,
    language: str,
    destination: Path,
) -> str:
    response = client.post(f"{base_url}/speech", json={"text": text, "lang": language})
    if response.status_code != 200:
        return f"speech failed: http {response.status_code}"
    destination.write_bytes(response.content)
    return f"speech saved: {destination} (voice={response.headers.get('x-voice-id')})"


def main() -> int:
    args = parse_args()
    base_url = args.base_url.rstrip("/")
    repeat = max(1, args.repeat)
    if args.speech_dir is not None:
        args.speech_dir.mkdir(parents=True, exist_ok=True)

    emit(f"translate probe started (base_url={base_url}, target={args.target})")

    status_counts: dict[int, int] = {}
    with httpx.Client(timeout=30.0) as client:
        try:
            health = client.get(f"{base_url}/health")
            health.raise_for_status()
        except httpx.HTTPError as exc:
            emit(f"failed to reach backend health endpoint: {exc}")
            return 2

        sequence = 0
        for phrase in args.phrases:
            for _ in range(repeat):
                sequence += 1
                status, payload, latency_ms = translate_once(
                    client, base_url, phrase, args.target, args.source
                )
                status_counts[status] = status_counts.get(status, 0) + 1
                if status == 200:
                    translated = str(payload.get("translated", ""))
                    emit(f"[{sequence:03d}] {status} {latency_ms:7.1f}ms {phrase!r} -> {translated!r}")
                    if args.speech_dir is not None and translated:
                        destination = args.speech_dir / f"translation_{sequence:03d}.mp3"
                        emit(
                            "      "
                            + fetch_speech(client, base_url, translated, args.target, destination)
                        )
                else:
                    emit(
                        f"[{sequence:03d}] {status} {latency_ms:7.1f}ms {phrase!r} "
                        f"error={payload.get('error')!r}"
                    )

        status = client.get(f"{base_url}/translations/status").json()

    emit("")
    emit(f"status codes: {dict(sorted(status_counts.items()))}")
    emit(
        "gateway: "
        f"ok={status.get('succeeded')} failed={status.get('failed')} "
        f"rate_limited={status.get('rate_limited')} rejected={status.get('rejected')} "
        f"avg_latency_ms={status.get('average_latency_ms')}"
    )
    if status.get("last_error"):
        emit(f"last_provider_error: {status['last_error']}")
    return 0 if status_counts.get(200) else 1


if __name__ == "__main__":
    raise SystemExit(main())
