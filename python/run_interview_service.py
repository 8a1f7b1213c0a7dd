#!/usr/bin/env python3
"""
Launch the Pixie interview service.
"""

from __future__ import annotations

import argparse
import os

import uvicorn


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run the Pixie interview service.",
    )
    parser.add_argument("--host", default="0.0.0.0", help="Service bind host.")
    parser.add_argument("--port", type=int, default=8000, help="Service bind port.")
    parser.add_argument(
        "--model",
        default=None,
        help="Pin a model for question/follow-up/closing generation (sets GEMINI_MODEL).",
    )
    parser.add_argument(
        "--transcribe-model",
        default=None,
        help="Pin a model for audio transcription (sets GEMINI_TRANSCRIBE_MODEL).",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Provider request timeout in seconds (sets GEMINI_TIMEOUT_SECONDS).",
    )
    parser.add_argument("--log-level", default="info", help="Uvicorn log level.")
    return parser.parse_args()


def main() -> None:
    args = parse_args()

    os.environ["SERVICE_HOST"] = args.host
    os.environ["SERVICE_PORT"] = str(args.port)
    if args.model:
        os.environ["GEMINI_MODEL"] = args.model
    if args.transcribe_model:
        os.environ["GEMINI_TRANSCRIBE_MODEL"] = args.transcribe_model
    if args.timeout is not None:
        os.environ["GEMINI_TIMEOUT_SECONDS"] = str(args.timeout)

    from interview_service import app  # Import after env config

    print(
        f"Starting Pixie interview service bind=http://{args.host}:{args.port} "
        f"model={os.environ.get('GEMINI_MODEL') or 'auto'} "
        f"transcribe_model={os.environ.get('GEMINI_TRANSCRIBE_MODEL') or 'auto'}"
    )
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level)


if __name__ == "__main__":
    main()
