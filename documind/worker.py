"""Ingestion worker process. Run one per queue (or several for throughput):

    documind-worker --kind document
    documind-worker --kind audio
"""
import argparse
import logging
import signal
import threading

from documind.ingest.media import MEDIA_KINDS, get_media_kind
from documind.ingest.worker import IngestionWorker
from documind.observability.logging_cfg import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Consume ingestion jobs for one media kind.")
    parser.add_argument("--kind", choices=sorted(MEDIA_KINDS), required=True, help="Media kind whose queue to consume")
    parser.add_argument("--poll-timeout", type=float, default=5.0, help="Seconds to block waiting for a job")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    return parser


def main(argv=None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    stop = threading.Event()

    def _handle_signal(signum, _frame):
        # the job in flight runs to completion; no new claims after this
        logger.info("worker_signal", extra={"signal": signum})
        stop.set()

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)

    worker = IngestionWorker(get_media_kind(args.kind))
    worker.run_forever(stop=stop, poll_timeout=args.poll_timeout)


if __name__ == "__main__":
    main()
