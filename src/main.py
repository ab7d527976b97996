import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from queue import Queue
from typing import Optional

from app_config import (
    AppConfigurationError,
    load_app_config,
    load_secret_config,
    resolve_config_path,
)
from contracts.speech_engine import QueueEventPublisher
from reader import PlaybackSnapshot, PlaybackState, ReaderConfig
from runtime import (
    HostDependencies,
    PlaybackSessionHost,
    RuntimeUICommandRouter,
    RuntimeUIPublisher,
)
from server import ServerConfigurationError, UIServer, UIServerConfig
from tts import (
    PiperTTSEngine,
    PlaybackEngineAdapter,
    SoundDeviceAudioOutput,
    TTSConfig,
    TTSConfigurationError,
)


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """Configure logging for the application."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    return logging.getLogger("story_reader_app")


def setup_signal_handlers(host: PlaybackSessionHost) -> None:
    """Set up graceful shutdown on SIGTERM and SIGINT."""

    def signal_handler(signum: int, frame) -> None:
        signal_name = signal.Signals(signum).name
        print(f"\n👋 {signal_name} received, stopping...\n")
        host.stop()
        sys.exit(0)

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Read a story aloud with a local Piper voice.",
    )
    parser.add_argument(
        "file",
        nargs="?",
        help="UTF-8 text file to read. Optional when the UI server is enabled.",
    )
    parser.add_argument("--config", help="Path to config.toml")
    parser.add_argument("--title", default="", help="Title spoken before the story")
    parser.add_argument("--story-id", type=int, default=1, help="Story identifier")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


class _CompletionWatcher:
    """Tracks when a started reading has run to its end or failed."""

    def __init__(self):
        self.done = threading.Event()
        self.failed = False
        self._started = False

    def on_state(self, snapshot: PlaybackSnapshot) -> None:
        if snapshot.state == PlaybackState.PLAYING:
            self._started = True
        elif snapshot.state == PlaybackState.ERROR:
            self.failed = True
            self.done.set()
        elif snapshot.state in (PlaybackState.READY, PlaybackState.IDLE) and self._started:
            self.done.set()

    def reset(self) -> None:
        self.done.clear()
        self.failed = False
        self._started = False

    def on_progress(self, snapshot: PlaybackSnapshot) -> None:
        print(f"\r  📖 {snapshot.progress:3d}%", end="", flush=True)


def main(argv: Optional[list[str]] = None) -> int:
    """Run the story reader."""
    args = parse_args(argv)
    logger = setup_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    # Load typed app configuration and secrets.
    try:
        config_path = resolve_config_path(args.config)
        app_config = load_app_config(str(config_path))
        secret_config = load_secret_config()
        logger.info("Loaded runtime config: %s", config_path)
    except AppConfigurationError as error:
        logger.error(f"App configuration error: {error}")
        return 1

    text = ""
    if args.file:
        try:
            text = Path(args.file).read_text(encoding="utf-8")
        except OSError as error:
            logger.error(f"Cannot read story file: {error}")
            return 1
        if not text.strip():
            logger.warning("Story file %s is empty, nothing to read", args.file)
            if not app_config.ui_server.enabled:
                return 0
            text = ""
    elif not app_config.ui_server.enabled:
        logger.error("No story file given and the UI server is disabled.")
        return 1

    try:
        tts_config = TTSConfig.from_settings(app_config.tts, hf_token=secret_config.hf_token)
        reader_config = ReaderConfig(
            max_chunk_length=app_config.reader.max_chunk_length,
            title_pause_ms=app_config.reader.title_pause_ms,
            resume_lookback_chars=app_config.reader.resume_lookback_chars,
        )
    except (TTSConfigurationError, ValueError) as error:
        logger.error(f"Configuration error: {error}")
        return 1

    event_queue: Queue = Queue()
    engine = PlaybackEngineAdapter(
        lambda: PiperTTSEngine(config=tts_config, logger=logging.getLogger("tts.engine")),
        SoundDeviceAudioOutput(
            output_device_index=tts_config.output_device_index,
            logger=logging.getLogger("tts.output"),
        ),
        QueueEventPublisher(event_queue),
        rate=tts_config.rate,
        pitch=tts_config.pitch,
        logger=logging.getLogger("tts.adapter"),
    )
    host = PlaybackSessionHost(
        HostDependencies(
            engine=engine,
            event_queue=event_queue,
            logger=logging.getLogger("runtime"),
            reader_config=reader_config,
            preferred_language=tts_config.preferred_language,
        )
    )

    # Optional UI server
    ui_server: Optional[UIServer] = None
    if app_config.ui_server.enabled:
        try:
            ui_server = UIServer(
                config=UIServerConfig.from_settings(app_config.ui_server),
                logger=logging.getLogger("ui_server"),
                command_handler=RuntimeUICommandRouter(host),
            )
            ui_server.start()
            ui_publisher = RuntimeUIPublisher(ui_server)
            host.add_listener(ui_publisher.publish_snapshot, ui_publisher.publish_progress)
        except (ServerConfigurationError, OSError, RuntimeError) as error:
            logger.error(f"UI server initialization error: {error}")
            return 1

    watcher = _CompletionWatcher()
    host.register_observer(watcher.on_state, watcher.on_progress)

    try:
        setup_signal_handlers(host)

        logger.info("Starting playback host...")
        host.start()

        if text:
            title = args.title.strip() or Path(args.file).stem
            print(f"🔊 Reading \"{title}\" ({len(text):,} characters)\n")
            host.start_reading(args.story_id, title, text)

        while True:
            if watcher.done.wait(timeout=0.25):
                print()
                if watcher.failed:
                    logger.error("Playback failed")
                    if ui_server is None:
                        return 1
                elif ui_server is None:
                    logger.info("Finished reading")
                    return 0
                watcher.reset()

            if not host.is_running:
                logger.error("Playback host stopped unexpectedly")
                return 1

    except KeyboardInterrupt:
        print("\n👋 Shutting down...\n")
        return 0

    except Exception as error:
        logger.error(f"Unexpected error: {error}", exc_info=True)
        return 1

    finally:
        logger.info("Stopping playback host...")
        try:
            host.stop(timeout_seconds=5.0)
        except Exception as error:
            logger.error(f"Error stopping playback host: {error}", exc_info=True)
        if ui_server:
            logger.info("Stopping UI server...")
            try:
                ui_server.stop(timeout_seconds=5.0)
            except Exception as error:
                logger.error(f"Error stopping UI server: {error}", exc_info=True)


if __name__ == "__main__":
    sys.exit(main())
