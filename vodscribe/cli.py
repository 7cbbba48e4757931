"""Command-Line Interface handler for vodscribe."""

import argparse
import asyncio
import logging
import os
import sys
from dataclasses import replace
from datetime import datetime, timezone
from typing import List, Optional

from .config_loader import ConfigLoader, PipelineSettings
from .log_setup import setup_logging
from .models import OutcomeStatus, SourceVideo
from .pipeline import TranscriptPipeline
from .storage import SQLiteTranscriptStorage
from .exceptions import VodScribeError, ConfigurationError

logger = logging.getLogger(__name__) # Get logger for this module

EXIT_CODES = {
    OutcomeStatus.SUCCEEDED: 0,
    OutcomeStatus.FAILED: 1,
    OutcomeStatus.INVALID_OUTPUT: 2,
}

class CLIHandler:
    """Parses arguments and runs the transcript pipeline for one video."""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Creates the argument parser for the CLI."""
        parser = argparse.ArgumentParser(
            description="vodscribe: Generate a searchable transcript for a long local video.",
            formatter_class=argparse.ArgumentDefaultsHelpFormatter # Show defaults in help
        )
        parser.add_argument(
            "-v", "--video",
            required=True,
            help="Path to the input video file."
        )
        parser.add_argument(
            "--video-id",
            default=None,
            help="Identifier used for artifact names and storage rows. Defaults to the video file name without extension."
        )
        parser.add_argument(
            "-c", "--config",
            default="config.yaml",
            help="Path to the configuration YAML file. Skipped if it does not exist."
        )
        parser.add_argument(
            "-d", "--database",
            default="transcripts.db",
            help="Path to the SQLite transcript database."
        )
        parser.add_argument(
            "--data-root",
            default=None,
            help="Override the working directory for audio and transcript artifacts."
        )
        parser.add_argument(
            "--model",
            default=None,
            help="Override the whisper model name."
        )
        parser.add_argument(
            "--concurrency",
            type=int,
            default=None,
            help="Override how many chunks are transcribed at once."
        )
        parser.add_argument(
            "--progress",
            action="store_true",
            help="Show a progress bar while chunks are transcribed."
        )
        parser.add_argument(
            "--log-level",
            default="INFO",
            choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            help="Set the logging level for console and file output."
        )
        return parser

    def _load_settings(self, args: argparse.Namespace) -> PipelineSettings:
        config = {}
        if os.path.exists(args.config):
            config = ConfigLoader().load_config(args.config)
        else:
            logger.info(f"No configuration file at {args.config}, using defaults")

        log_dir = config.pop('log_dir', 'logs')
        log_file = config.pop('log_file', 'vodscribe.log')
        log_level = getattr(logging, args.log_level.upper(), logging.INFO)
        setup_logging(log_level=log_level, log_dir=log_dir, log_file=log_file)

        settings = PipelineSettings.from_env(PipelineSettings.from_dict(config))

        overrides = {}
        if args.data_root:
            overrides['data_root'] = args.data_root
        if args.model:
            overrides['model_name'] = args.model
        if args.concurrency is not None:
            overrides['chunk_concurrency'] = args.concurrency
        if args.progress:
            overrides['show_progress'] = True
        if overrides:
            logger.info(f"Applying CLI overrides: {', '.join(sorted(overrides))}")
            settings = replace(settings, **overrides)
        return settings

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Parses arguments, sets up logging, loads config, runs the pipeline and returns an exit code."""
        args = self.parser.parse_args(argv)

        log_level = getattr(logging, args.log_level.upper(), logging.INFO)
        setup_logging(log_level=log_level, log_dir=None)

        try:
            settings = self._load_settings(args)
        except (ConfigurationError, FileNotFoundError) as e:
            logger.critical(f"Failed to load configuration from {args.config}: {e}")
            return 1

        if not os.path.isfile(args.video):
            logger.critical(f"Input video file not found or is not a file: {args.video}")
            return 1

        video = SourceVideo(
            id=args.video_id or os.path.splitext(os.path.basename(args.video))[0],
            file_path=args.video,
            created_at=datetime.now(timezone.utc).isoformat(),
        )

        storage = None
        try:
            storage = SQLiteTranscriptStorage(args.database)
            pipeline = TranscriptPipeline(settings, storage)
            outcome = asyncio.run(pipeline.generate_transcript(video))
        except VodScribeError as e:
            logger.error(f"A vodscribe error occurred: {e}")
            return 1
        except KeyboardInterrupt:
            logger.warning("Process interrupted by user (Ctrl+C). Exiting.")
            return 1
        finally:
            if storage is not None:
                storage.close()

        if outcome.succeeded:
            logger.info(f"Transcript for {video.id} stored in {args.database}")
        else:
            logger.error(f"Transcript for {video.id} was not produced: {outcome.reason}")
        return EXIT_CODES[outcome.status]


def main() -> None:
    sys.exit(CLIHandler().run())
