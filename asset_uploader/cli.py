"""Command line interface for asset_uploader package."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from rich.logging import RichHandler

from .cli_progress import ShareProgressDisplay, render_configuration_summary


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug, --log-level or LOG_LEVEL is
    provided. Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    env_level = os.getenv("LOG_LEVEL")
    if silent or (not debug and not log_level and not env_level):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, (log_level or env_level or "INFO").upper(), logging.INFO)

    handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    return logging.getLevelName(level)


def _parse_env_line(raw_line: str) -> Optional[Tuple[str, str]]:
    """Split one `.env` line into (key, value); None for blanks, comments and junk."""
    line = raw_line.strip()
    if line.startswith("export "):
        line = line[len("export ") :].lstrip()
    key, sep, value = line.partition("=")
    key = key.strip()
    if not sep or not key or key.startswith("#"):
        return None
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
        value = value[1:-1]
    return key, value


def _load_env_file(path: Path, override: bool = False) -> Dict[str, str]:
    """Export SHARE_* (and any other) settings from a `.env` file; returns what was set."""
    if not path.is_file():
        reason = "not found" if not path.exists() else "is not a file"
        raise CLIError(f"env file {reason}: {path}")
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    applied = {}
    for entry in filter(None, map(_parse_env_line, lines)):
        key, value = entry
        if override or key not in os.environ:
            os.environ[key] = value
            applied[key] = value
    return applied


def _resolve_default_env_file(directory: Optional[Path] = None) -> Optional[Path]:
    candidate = (directory or Path.cwd()) / ".env"
    return candidate if candidate.is_file() else None


def _collect_files(paths: Sequence[Path]) -> List[Tuple[Path, str]]:
    """
    Expand folders and name every file as it will appear on the site.

    Files found inside a folder keep their path relative to that folder, so
    `imgs/a/x.png` and `imgs/b/x.png` stay distinct. Two inputs that still
    map to the same name are rejected.
    """
    files: List[Tuple[Path, str]] = []
    owners: Dict[str, Path] = {}
    for raw in paths:
        path = Path(raw).expanduser()
        if not path.exists():
            raise CLIError(f"asset does not exist: {path}")
        if path.is_dir():
            found = [(p, p.relative_to(path).as_posix()) for p in sorted(path.rglob("*")) if p.is_file()]
        else:
            found = [(path, path.name)]
        for file_path, name in found:
            if name in owners:
                raise CLIError(f"assets {owners[name]} and {file_path} would both be uploaded as {name}")
            owners[name] = file_path
            files.append((file_path, name))
    return files


def _install_interrupt(token) -> None:
    """Route Ctrl+C to the batch token so the remote upload is cancelled cleanly."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, token.abort, "Interrupted by user")
    except (NotImplementedError, RuntimeError):
        # Windows event loops have no signal handlers; KeyboardInterrupt still applies
        pass


async def _run_share(
    site_url: str,
    api_key: str,
    doc_id: str,
    title: str,
    markdown: str,
    files: List[Tuple[Path, str]],
    notebook: bool,
    config,
) -> int:
    from .errors import UploadCancelled
    from .models import Asset
    from .orchestrator import ShareUploadOrchestrator
    from .utils.cancellation import CancellationToken

    owner = None if notebook else doc_id
    assets = [Asset.from_file(file_path, path=f"assets/{name}", doc_id=owner) for file_path, name in files]
    metadata = {"title": title, "hPath": "", "markdown": markdown, "sortOrder": 0}

    token = CancellationToken()
    _install_interrupt(token)

    display = ShareProgressDisplay("Creating share")
    async with ShareUploadOrchestrator(site_url, api_key, config=config) as orchestrator:
        orchestrator.on("asset_complete", display.on_asset_complete)
        orchestrator.on("chunk_retry", display.on_chunk_retry)
        try:
            if notebook:
                result = await orchestrator.share_notebook(doc_id, metadata, assets, display, token)
            else:
                result = await orchestrator.share_doc(doc_id, metadata, assets, display, token)
        except UploadCancelled:
            print("Cancelled.", file=sys.stderr)
            return 130
        except Exception as exc:
            display.on_error(exc)
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    print(
        f"Shared {result.total_assets} assets ({result.total_bytes} bytes) "
        f"in {result.elapsed:.1f}s, upload {result.upload_id}"
    )
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="share-up",
        description="Upload a document's assets to a share site with adaptive chunking.",
    )
    parser.add_argument("assets", nargs="*", type=Path, help="Asset files or folders")
    parser.add_argument("-d", "--doc-id", default=None, help="Document (or notebook) id to share")
    parser.add_argument("-t", "--title", default=None, help="Share title (default: doc id)")
    parser.add_argument("-m", "--markdown", type=Path, default=None, help="Markdown file for the share body")
    parser.add_argument("--notebook", action="store_true", help="Share a notebook instead of a doc")
    parser.add_argument("--site", default=None, help="Site URL (default from SHARE_SITE_URL)")
    parser.add_argument("--api-key", default=None, help="Site API key (default from SHARE_API_KEY)")
    parser.add_argument("--max-asset-concurrency", type=int, default=None, help="Assets uploaded at once")
    parser.add_argument("--max-chunk-concurrency", type=int, default=None, help="Chunks per asset at once")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument("--version", action="version", version="share-up (from asset_uploader)")
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _resolve_default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    if args.doc_id is None:
        parser.print_help()
        return 0

    site_url = args.site or os.getenv("SHARE_SITE_URL")
    api_key = args.api_key or os.getenv("SHARE_API_KEY")

    from .models import UploadConfig
    from .services.api_client import normalize_site_url

    try:
        if not site_url:
            raise CLIError("site URL missing (--site or SHARE_SITE_URL)")
        if not api_key:
            raise CLIError("API key missing (--api-key or SHARE_API_KEY)")
        site_url = normalize_site_url(site_url)
        files = _collect_files(args.assets)
        markdown = args.markdown.read_text(encoding="utf-8") if args.markdown else ""
        config = UploadConfig.from_env(
            max_asset_concurrency=args.max_asset_concurrency,
            max_chunk_concurrency=args.max_chunk_concurrency,
        )
    except (CLIError, OSError, ValueError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    render_configuration_summary(
        {
            "Site": site_url,
            "Share": f"{'notebook' if args.notebook else 'doc'} {args.doc_id}",
            "Assets": len(files),
            "Asset Concurrency": config.max_asset_concurrency,
            "Chunk Concurrency": config.max_chunk_concurrency,
            "Chunk Retries": config.chunk_retries,
            "Env File": str(used_env_file) if used_env_file else "-",
            "Logging": effective_log_mode,
        }
    )

    try:
        return asyncio.run(
            _run_share(
                site_url=site_url,
                api_key=api_key,
                doc_id=args.doc_id,
                title=args.title or args.doc_id,
                markdown=markdown,
                files=files,
                notebook=args.notebook,
                config=config,
            )
        )
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
