#!/usr/bin/env python3
"""
Interview Session Simulator.

Drives a full Pixie interview against the running interview service, the way
the session screen does: scripted questions, generated follow-ups after
substantive answers, and a generated closing statement.

Usage:
    # Start the service first:
    uv run python run_interview_service.py

    # In another terminal, run a scripted session:
    uv run python simulate_interview.py

    # Answer interactively:
    uv run python simulate_interview.py --interactive

    # Answers from a file (one answer per line):
    uv run python simulate_interview.py --answers answers.txt
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Final, Iterator

import httpx

from pixie_interview.client import InterviewApiClient, SessionRunner

# =============================================================================
# Logging Configuration
# =============================================================================

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger: logging.Logger = logging.getLogger(__name__)


# =============================================================================
# Exit Codes
# =============================================================================

EXIT_SUCCESS: Final[int] = 0
EXIT_CONNECTION_ERROR: Final[int] = 1
EXIT_SERVICE_UNHEALTHY: Final[int] = 2
EXIT_SESSION_ERROR: Final[int] = 3
EXIT_INTERRUPTED: Final[int] = 130  # Standard SIGINT exit code


# =============================================================================
# Configuration
# =============================================================================

DEFAULT_SERVICE_URL: Final[str] = "http://127.0.0.1:8000"


# =============================================================================
# Synthetic Answers
# =============================================================================

SIMULATED_ANSWERS: Final[tuple[str, ...]] = (
    "I'm a backend engineer with six years of Python experience, mostly building data services and internal APIs for analytics teams.",
    "I moved from an event pipeline to batch jobs, which brought latency down a lot.",
    "I'm interested because the role sits between product and infrastructure, and I enjoy owning features end to end while keeping systems reliable.",
    "Our checkout service dropped requests under load. I reproduced it with a load test, traced it to a connection pool limit, and fixed the pool sizing.",
    "Not sure, probably that I communicate clearly but could delegate more.",
    "What does success look like in the first six months?",
    "How does the team handle on-call?",
    "Thanks, that's all from me.",
)


def _answers_from_file(path: Path) -> Iterator[str]:
    with open(path, "r", encoding="utf-8") as answers_file:
        for line in answers_file:
            if line.strip():
                yield line.strip()


async def _read_answer() -> str:
    return (await asyncio.to_thread(input, "You> ")).strip()


def _print_turn(text: str) -> None:
    print(f"\nPixie> {text}\n")


# =============================================================================
# Session Runner
# =============================================================================

async def run_session(
    service_url: str,
    answers: Iterator[str] | None,
) -> int:
    """
    Run one interview session against the service.

    Args:
        service_url: Base URL of the interview service.
        answers: Scripted answers, or None to read answers from stdin.

    Returns:
        Exit code indicating success or failure.
    """
    async with httpx.AsyncClient(timeout=120.0) as client:
        logger.info("Checking interview service health...")
        try:
            resp = await client.get(f"{service_url}/health")
            if resp.status_code != 200:
                logger.error("Service not healthy: %d", resp.status_code)
                return EXIT_SERVICE_UNHEALTHY
            health: dict[str, object] = resp.json()
            logger.info("Service healthy: %s", health)
            if not health.get("api_key_configured"):
                logger.warning("GEMINI_API_KEY is not set on the service; follow-ups and closing will fall back")
        except httpx.ConnectError:
            logger.error("Cannot connect to service at %s. Is it running?", service_url)
            logger.error("Start it with: uv run python run_interview_service.py")
            return EXIT_CONNECTION_ERROR

        runner = SessionRunner(
            InterviewApiClient(client, service_url),
            on_assistant_turn=_print_turn,
        )
        await runner.start()

        while not runner.done:
            if answers is None:
                answer = await _read_answer()
            else:
                answer = next(answers, None)
                if answer is None:
                    logger.error("Ran out of scripted answers before the interview finished")
                    return EXIT_SESSION_ERROR
                print(f"You> {answer}")
            if answer:
                await runner.submit_answer(answer)

        logger.info("%s", "=" * 60)
        logger.info("Interview complete: %d turns", len(runner.turns))
        for diagnostic in runner.diagnostics:
            logger.info("Diagnostic: %s", diagnostic)

        stats_resp = await client.get(f"{service_url}/stats")
        if stats_resp.status_code == 200:
            logger.info("Service stats: %s", stats_resp.json().get("stats"))
        logger.info("%s", "=" * 60)

    return EXIT_SUCCESS


def main(
    service_url: str | None = None,
    answers_path: str | None = None,
    interactive: bool = False,
) -> int:
    """
    Main entry point for the session simulator.

    Args:
        service_url: URL of the interview service (defaults to env var or localhost:8000).
        answers_path: Optional file with one answer per line.
        interactive: Read answers from stdin instead of a script.

    Returns:
        Exit code indicating success or failure.
    """
    resolved_url = (service_url or os.environ.get("SERVICE_URL", DEFAULT_SERVICE_URL)).rstrip("/")

    answers: Iterator[str] | None
    if interactive:
        answers = None
    elif answers_path:
        path = Path(answers_path).expanduser()
        if not path.exists():
            logger.error("Answers file not found: %s", path)
            return EXIT_SESSION_ERROR
        answers = _answers_from_file(path)
    else:
        answers = iter(SIMULATED_ANSWERS)

    logger.info("=" * 60)
    logger.info("Pixie Interview Simulator")
    logger.info("=" * 60)
    logger.info("Target: %s", resolved_url)
    logger.info("Mode: %s", "interactive" if interactive else "scripted")

    try:
        return asyncio.run(run_session(resolved_url, answers))
    except KeyboardInterrupt:
        logger.info("\nSimulation interrupted")
        return EXIT_INTERRUPTED


def cli() -> None:
    """Command-line interface entry point with argument parsing."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Run a Pixie interview session against the interview service.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
    SERVICE_URL   Interview service URL (default: http://127.0.0.1:8000)
        """,
    )
    parser.add_argument(
        "--service-url",
        type=str,
        default=None,
        help=f"Interview service URL (default: {DEFAULT_SERVICE_URL})",
    )
    parser.add_argument(
        "--answers",
        type=str,
        default=None,
        dest="answers_path",
        help="File with one answer per line",
    )
    parser.add_argument(
        "--interactive",
        action="store_true",
        help="Type answers at the prompt",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    sys.exit(
        main(
            service_url=args.service_url,
            answers_path=args.answers_path,
            interactive=args.interactive,
        )
    )


if __name__ == "__main__":
    cli()
