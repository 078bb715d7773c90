#!/usr/bin/env python3
"""Print upload, retrieval and retry limits (from config). Run from repo root: python scripts/print_limits.py"""
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from documind.core.config import settings
from documind.ingest.media import MEDIA_KINDS


def main():
    """Print per-kind chunking/retrieval parameters and global limits."""
    print("Upload & ingestion limits")
    print("-------------------------")
    print(f"  MAX_FILE_KB           = {settings.max_file_kb} KB (max size per uploaded file)")
    print(f"  MAX_AUDIO_KB          = {settings.max_audio_kb} KB (max audio size sent for transcription)")
    print(f"  MAX_JOB_ATTEMPTS      = {settings.max_job_attempts} (deliveries before a job is dead-lettered)")
    print(f"  RETRY_BACKOFF_SECONDS = {settings.retry_backoff_seconds} (doubles per attempt)")
    print("")
    print("Per media kind")
    print("--------------")
    for kind in MEDIA_KINDS.values():
        print(
            f"  {kind.name:<9} queue={kind.queue} collection={kind.collection} "
            f"chunk={kind.chunk_size}/{kind.chunk_overlap} top_k={kind.top_k}"
        )
    print("")
    print(f"  RETRIEVE_OVERFETCH    = {settings.retrieve_overfetch}x")
    print(f"  FALLBACK_LIMIT        = {settings.fallback_limit} chunks")
    print("")
    print("Env: see .env.example")


if __name__ == "__main__":
    main()
