"""CLI entrypoint for the downloader package.
"""
import argparse
import os
import sys

from .entity import ArtifactId, ArtifactType
from .errors import (
    ArtifactIOError,
    DownloadError,
    DownloaderError,
    InsufficientSpaceError,
    IntegrityError,
    InvalidIdError,
    LocalArtifactNotFoundError,
    NotFoundError,
)
from .huggingface import HuggingFaceDownloader
from .store import LocalModelStore, human_size
from .utils import build_config_from_env, cleanup_temp_files, configure_logging, wait_for_health

# remediation hints per error kind, most specific class first
_HINTS = [
    (InvalidIdError, ["Use the format: username/model-name"]),
    (LocalArtifactNotFoundError, ["List local models with: python -m llamarunner.downloader list"]),
    (NotFoundError, ["Verify the model id on the hub", "Check access for gated or private repositories"]),
    (InsufficientSpaceError, ["Free up disk space or point LLAMARUNNER_MODELS_DIR elsewhere"]),
    (IntegrityError, ["The server may have returned an error page", "Retry the download"]),
    (DownloadError, ["Check internet connection", "Try again with DEBUG=1 for more details"]),
    (ArtifactIOError, ["Check permissions and free space in the models and temp directories"]),
]


def _build_parser():
    p = argparse.ArgumentParser(prog="llamarunner.downloader")
    # Behavior knobs (store root, retries, timeouts) come from LLAMARUNNER_*
    # environment variables, see utils.build_config_from_env.
    p.add_argument("--debug", action="store_true", help="verbose tracing of every step")
    sub = p.add_subparsers(dest="command", required=True)

    d = sub.add_parser("download", help="download a model into the local store")
    d.add_argument("--name", required=True, help="model id, e.g. TheBloke/phi-2-GGUF")
    d.add_argument("--type", default=ArtifactType.COMPLETION.value,
                   choices=[t.value for t in ArtifactType], help="model type (informational)")
    d.add_argument("--wait-health", metavar="URL", help="poll URL for readiness after download")

    sub.add_parser("list", help="list locally stored models")

    r = sub.add_parser("remove", help="delete a locally stored model")
    r.add_argument("--name", required=True, help="model id")
    r.add_argument("--yes", action="store_true", help="do not ask for confirmation")

    pa = sub.add_parser("path", help="print the local path for a model id")
    pa.add_argument("--name", required=True, help="model id")

    h = sub.add_parser("health", help="wait for an HTTP endpoint to answer")
    h.add_argument("--url", required=True)
    h.add_argument("--timeout", type=int, default=30, help="seconds to wait")

    c = sub.add_parser("cleanup", help="remove stale temporary downloads")
    c.add_argument("--older-than", type=float, default=60, help="minutes")

    return p


def _cmd_download(args, config):
    downloader = HuggingFaceDownloader(config)
    path = downloader.download_artifact(args.name, args.type)
    print(path)
    if args.wait_health and not wait_for_health(args.wait_health):
        print(f"Health check failed: {args.wait_health}", file=sys.stderr)
        return 1
    return 0


def _cmd_list(args, config):
    store = LocalModelStore(config)
    artifacts = store.list()
    if not artifacts:
        print(f"No models found in {store.root}")
        return 0
    for a in artifacts:
        print(f"  {a.model_id}")
        print(f"     File: {a.path.name}")
        print(f"     Size: {a.size_human}")
        print(f"     Path: {a.path}")
    print(f"Total size: {human_size(sum(a.size_bytes for a in artifacts))}")
    return 0


def _cmd_remove(args, config):
    store = LocalModelStore(config)
    model_id = ArtifactId.parse(args.name)
    path = store.path_for(model_id)
    if not args.yes and path.is_file():
        confirm = input(f"Remove model {model_id} ({store.human_size(path)})? (y/N): ")
        if confirm.strip().lower() != "y":
            print("Model removal cancelled")
            return 0
    store.remove(model_id)
    print(f"Model removed: {model_id}")
    return 0


def _cmd_path(args, config):
    print(LocalModelStore(config).path_for(ArtifactId.parse(args.name)))
    return 0


def _cmd_health(args, config):
    if wait_for_health(args.url, args.timeout):
        print(f"Service is up: {args.url}")
        return 0
    print(f"Health check failed: {args.url}", file=sys.stderr)
    return 1


def _cmd_cleanup(args, config):
    removed = cleanup_temp_files(config.temp_dir, args.older_than)
    print(f"Removed {removed} temporary files" if removed else "No files needed cleanup")
    return 0


_COMMANDS = {
    "download": _cmd_download,
    "list": _cmd_list,
    "remove": _cmd_remove,
    "path": _cmd_path,
    "health": _cmd_health,
    "cleanup": _cmd_cleanup,
}


def _report(err: DownloaderError) -> None:
    print(f"Error: {err}", file=sys.stderr)
    for kind, hints in _HINTS:
        if isinstance(err, kind):
            print("Troubleshooting tips:", file=sys.stderr)
            for hint in hints:
                print(f"   - {hint}", file=sys.stderr)
            break


def main(argv=None):
    argv = argv if argv is not None else sys.argv[1:]
    parser = _build_parser()
    args = parser.parse_args(argv)

    config = build_config_from_env()
    config.debug = config.debug or args.debug
    configure_logging(config.debug, os.environ.get("LLAMARUNNER_LOG_FILE"))

    try:
        return _COMMANDS[args.command](args, config)
    except DownloaderError as e:
        _report(e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
