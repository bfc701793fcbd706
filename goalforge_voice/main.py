"""Console driver: talk to the assistant about one project file."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .config import AppConfig, load_config
from .errors import AudioInputError, AudioOutputError
from .plan_store import JsonPlanStore
from .session import LiveAssistantSession
from .settings import SettingsStore


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="goalforge-voice",
        description="Talk to the GoalForge assistant about a project plan.",
    )
    parser.add_argument("project", type=Path, help="Path to the project JSON file.")
    parser.add_argument("--text-only", action="store_true", help="Do not open the microphone.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


class TranscriptPrinter:
    """Prints each conversation entry once it is final."""

    def __init__(self, session_ref) -> None:
        self._session_ref = session_ref
        self._printed = 0

    def __call__(self) -> None:
        session = self._session_ref()
        if session is None:
            return
        messages = session.messages
        while self._printed < len(messages) and messages[self._printed].is_final:
            message = messages[self._printed]
            print(f"[{message.sender.value}] {message.text}", flush=True)
            self._printed += 1


async def _run(config: AppConfig, settings: SettingsStore, plan_store: JsonPlanStore, listen: bool) -> int:
    holder: List[LiveAssistantSession] = []
    printer = TranscriptPrinter(lambda: holder[0] if holder else None)
    session = LiveAssistantSession(
        config,
        settings,
        plan_store,
        on_error=lambda message: logging.error("Assistant: %s", message),
        on_change=printer,
    )
    holder.append(session)

    async with session:
        if not await session.connect(plan_store.project):
            return 1
        if listen:
            try:
                session.start_listening()
            except (AudioInputError, AudioOutputError) as exc:
                logging.error("Microphone unavailable (%s); continuing with typed input.", exc)

        logging.info("Type a message and press Enter. /mute, /listen and /quit are available.")
        loop = asyncio.get_running_loop()
        while session.is_connected:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                break
            line = line.strip()
            if line in {"/quit", "/exit"}:
                break
            if line == "/mute":
                session.stop_listening()
            elif line == "/listen":
                try:
                    session.start_listening()
                except (AudioInputError, AudioOutputError) as exc:
                    logging.error("Microphone unavailable: %s", exc)
            else:
                session.send_text_message(line)
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    load_dotenv()
    args = _parse_args(argv)
    setup_logging(args.verbose)

    logging.info("Loading configuration...")
    try:
        config = load_config()
    except Exception as exc:
        logging.error("Failed to load configuration: %s", exc)
        sys.exit(1)
    logging.info(
        "Configuration loaded. model=%s input_device=%s output_device=%s",
        config.live.model,
        config.audio_input.device_name or config.audio_input.device_index,
        config.audio_output.device_name or config.audio_output.device_index,
    )

    settings = SettingsStore.from_env(config.paths.settings_file)
    try:
        plan_store = JsonPlanStore.load(args.project)
    except (OSError, ValueError) as exc:
        logging.error("Failed to load project %s: %s", args.project, exc)
        sys.exit(1)

    try:
        code = asyncio.run(_run(config, settings, plan_store, listen=not args.text_only))
    except KeyboardInterrupt:
        logging.info("Interrupted; shutting down.")
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    main()
