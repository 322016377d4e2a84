"""backlogsync CLI.

Subcommands:
  generate -> create missing tracker issues from the backlog document
  queue    -> compute the start queue and flip Group 1 labels to in-progress
  parse    -> list parsed backlog items and their canonical titles (offline)

Exit status is 0 on a clean run and 1 when a precondition failed, a tracker
read failed, or any per-item error occurred.
"""

from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Callable
from pathlib import Path

from backlogsync.config import CONFIG_DEFAULT, SyncConfig, load_config
from backlogsync.env_auth import EnvAuthConfig, create_env_auth_manager
from backlogsync.errors import PreconditionError, classify_error
from backlogsync.github_rest import DEFAULT_API_URL, GitHubAPIError, GitHubRestClient
from backlogsync.logging import configure_logging
from backlogsync.orchestrator import PIPELINES, load_items
from backlogsync.parser import canonical_title
from backlogsync.report import write_summary
from backlogsync.tracker import TrackerClient

REPO_HELP = "Override target repository (owner/repo); defaults to GITHUB_REPOSITORY"

ClientFactory = Callable[[str, str, SyncConfig], TrackerClient]


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="backlogsync", description="Backlog ↔ GitHub issue sync and start-queue builder"
    )
    p.add_argument("--log-level", help="Override logging level (env: BACKLOGSYNC_LOG_LEVEL)")
    p.add_argument("--json-logs", action="store_true", help="Emit structured JSON logs on stderr")
    sub = p.add_subparsers(dest="cmd", required=True, metavar="<command>")

    pg = sub.add_parser("generate", help="Create missing tracker issues from the backlog")
    pq = sub.add_parser("queue", help="Build the start queue and mark Group 1 in progress")
    for sp in (pg, pq):
        sp.add_argument("--config", default=CONFIG_DEFAULT)
        sp.add_argument("--repo", help=REPO_HELP)
        sp.add_argument(
            "--dry-run",
            action="store_true",
            help="Compute and report everything without mutating the tracker (env: DRY_RUN=true)",
        )
        sp.add_argument("--summary-json", help="Also write the report as JSON to this path")

    pp = sub.add_parser("parse", help="List parsed backlog items (no tracker access)")
    pp.add_argument("--config", default=CONFIG_DEFAULT)
    return p


def _resolve_config(path: str) -> SyncConfig:
    p = Path(path)
    if path == CONFIG_DEFAULT and not p.exists():
        return SyncConfig.default(Path.cwd())
    return load_config(p)


def _env_flag(name: str) -> bool:
    return (os.environ.get(name) or "").strip().lower() in {"1", "true", "yes", "on"}


def _default_client(token: str, repo: str, cfg: SyncConfig) -> TrackerClient:
    base_url = (os.environ.get("BACKLOGSYNC_GITHUB_API") or "").strip() or DEFAULT_API_URL
    return GitHubRestClient(token=token, repo=repo, base_url=base_url, page_size=cfg.page_size)


def _stop(message: str) -> int:
    print(f"❌ STOP: {message}", file=sys.stderr)
    return 1


def _cmd_parse(cfg: SyncConfig) -> int:
    items = load_items(cfg)
    lines = [f"## Parsed backlog ({len(items)})", ""]
    for item in items:
        tags = ", ".join(item.collision_tags) or "-"
        lines.append(f"- {canonical_title(item, cfg.title_prefix)} | area={item.area or '-'} | {tags}")
    print("\n".join(["```", *lines, "```"]))
    return 0


def _cmd_pipeline(
    cfg: SyncConfig, args: argparse.Namespace, client_factory: ClientFactory
) -> int:
    auth = create_env_auth_manager(
        EnvAuthConfig(load_dotenv=cfg.env_auth_load_dotenv, dotenv_path=cfg.env_auth_dotenv_path)
    )
    token = auth.require_github_token()
    repo = auth.get_repository(args.repo, cfg.github_repo)
    dry_run = bool(args.dry_run or _env_flag("DRY_RUN") or cfg.dry_run_default)
    client = client_factory(token, repo, cfg)

    result = PIPELINES[args.cmd](cfg, client, dry_run=dry_run)
    if args.summary_json:
        write_summary(args.summary_json, result.summary)
    print("\n" + result.report)
    return result.exit_code


def main(argv: list[str] | None = None, *, client_factory: ClientFactory | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        cfg = _resolve_config(args.config)
    except PreconditionError as exc:
        return _stop(str(exc))
    level = args.log_level or os.environ.get("BACKLOGSYNC_LOG_LEVEL") or cfg.logging_level
    configure_logging(json_logging=args.json_logs or cfg.logging_json_enabled, level=level)

    handlers: dict[str, Callable[[], int]] = {
        "parse": lambda: _cmd_parse(cfg),
        "generate": lambda: _cmd_pipeline(cfg, args, client_factory or _default_client),
        "queue": lambda: _cmd_pipeline(cfg, args, client_factory or _default_client),
    }
    try:
        return handlers[args.cmd]()
    except PreconditionError as exc:
        return _stop(str(exc))
    except GitHubAPIError as exc:
        info = classify_error(exc)
        print(f"Fatal: {info.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
