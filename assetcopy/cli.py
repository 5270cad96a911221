# cli.py

# --- Import necessary libraries ---
import argparse
import logging
import sys

from assetcopy.config import load_settings
from assetcopy.migration import build_context, run_migration


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Upload local Smooth Streaming files, copy them into a new Media Services asset "
                    "and print the streaming URL.")
    p.add_argument("--local-dir", default=None,
                   help="Directory to upload (default: LOCAL_MEDIA_DIR)")
    p.add_argument("--source-container", default=None,
                   help="Container in the external account to upload into (default: SOURCE_CONTAINER)")
    p.add_argument("--no-wait", action="store_true",
                   help="Exit right away instead of waiting for Enter")
    p.add_argument("--verbose", action="store_true")
    return p.parse_args(argv)


def configure_logging(verbose: bool = False) -> None:
    # Plain messages on stdout, the per-blob lines are the progress report.
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        stream=sys.stdout,
    )
    # The Azure SDK logs every HTTP request at INFO.
    logging.getLogger("azure").setLevel(logging.WARNING)


# --- Main Migration Function ---
def main(argv=None):
    args = parse_args(argv)
    configure_logging(args.verbose)

    # 1. --- Read account names and keys (env vars / .env) ---
    settings = load_settings()
    if args.source_container:
        settings.source_container = args.source_container

    # 2. --- Build the clients for all three accounts ---
    ctx = build_context(settings)

    # 3. --- Upload, copy into a new asset and publish ---
    result = run_migration(ctx, args.local_dir)

    summary = result.summary
    print(f"Copied: {summary.copied}, Skipped: {summary.skipped}, Errors: {summary.failed}")
    print("Smooth Streaming URL: " + result.streaming_url)

    # Keep the console window open, unless nobody is there to press Enter (cron, pipes).
    if not args.no_wait:
        try:
            input()
        except EOFError:
            pass
    return 0


# Standard Python entry point. Ensures main() is called only when the script is executed directly.
if __name__ == "__main__":
    sys.exit(main())
