"""Entry point for running wisperflow as a module: python -m wisperflow"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from wisperflow import __version__
from wisperflow.config import Config, Destination, FormattingMode, SettingsStore, SttProvider
from wisperflow.errors import WisperflowError


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity setting."""
    level = logging.INFO if verbose else logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    # Reduce noise from third-party libraries
    for name in ("urllib3", "httpx", "httpcore", "sounddevice", "pynput"):
        logging.getLogger(name).setLevel(logging.ERROR)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wisperflow",
        description="Voice dictation: hold a key, speak, text appears",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", type=Path, help="Path to the settings file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")

    sub = parser.add_subparsers(dest="command")
    sub.add_parser("start", help="Start listening for the hotkey to dictate")
    sub.add_parser("setup", help="Configure API keys, hotkey and preferences")
    sub.add_parser("config", help="Show current configuration")
    sub.add_parser("devices", help="List audio input devices")

    login = sub.add_parser("login", help="Connect to Base44 for history sync")
    login.add_argument("--app-id", required=True, help="Base44 App ID")
    login.add_argument("--token", required=True, help="Base44 auth token")
    return parser


def _ask(prompt: str, current: str) -> str:
    answer = input(f"{prompt} [{current}]: ").strip()
    return answer or current


def run_setup(store: SettingsStore, config: Config) -> int:
    """Interactively update the settings file."""
    print("\nWisperFlow Setup\n")
    values: dict[str, str] = {}

    choices = "/".join(p.value for p in SttProvider)
    provider = _ask(f"STT Provider ({choices})", config.stt_provider.value).lower()
    if provider not in {p.value for p in SttProvider}:
        print(f"❌ Unknown provider: {provider}")
        return 1
    values["stt_provider"] = provider

    if provider == SttProvider.WHISPER.value:
        key = input("OpenAI API Key: ").strip()
        if key:
            values["api_key_whisper"] = key
    else:
        key = input("Gemini API Key: ").strip()
        if key:
            values["api_key_gemini"] = key

    values["hotkey"] = _ask("Hotkey (e.g. RIGHT ALT, F13)", config.hotkey)
    values["language"] = _ask("Language (auto or ISO code)", config.language)

    dest = _ask("Default destination (cursor/clipboard)", config.destination.value).lower()
    if dest in {d.value for d in Destination}:
        values["destination"] = dest

    mode = _ask("Formatting mode (raw/clean/smart)", config.formatting_mode.value).lower()
    if mode in {m.value for m in FormattingMode}:
        values["formatting_mode"] = mode

    store.update(**values)
    print("\n✅ Setup complete! Run `wisperflow start` to begin.\n")
    return 0


def show_config(config: Config, store: SettingsStore) -> int:
    print("\nCurrent Configuration:\n")
    for label, value in config.describe().items():
        print(f"  {label + ':':<14}{value}")
    print(f"\n  Settings file: {store.path}\n")
    return 0


def run_login(store: SettingsStore, app_id: str, token: str) -> int:
    store.update(base44_app_id=app_id, base44_token=token)
    print("✅ Base44 connected! Transcriptions will sync to dashboard.")
    return 0


def list_devices() -> int:
    from wisperflow.audio import list_input_devices

    print("\n🎤 Available audio input devices:")
    print("-" * 50)
    for device in list_input_devices():
        print(f"  {device}")
    print("-" * 50)
    return 0


def run_app(config: Config, store: SettingsStore) -> int:
    from wisperflow.app import DictationApp

    app = DictationApp(config, store)

    try:
        app.run()
        return 0
    except KeyboardInterrupt:
        print("\n👋 Interrupted")
        return 130
    except Exception as e:
        logging.exception("Fatal error: %s", e)
        return 1
    finally:
        app.shutdown()


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    args = build_parser().parse_args(argv)
    store = SettingsStore(args.config)
    config = Config.load(store)
    if args.verbose:
        config.verbose = True

    setup_logging(config.verbose)

    try:
        if args.command == "setup":
            return run_setup(store, config)
        if args.command == "config":
            return show_config(config, store)
        if args.command == "login":
            return run_login(store, args.app_id, args.token)
        if args.command == "devices":
            return list_devices()
        return run_app(config, store)
    except WisperflowError as e:
        print(f"❌ {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
