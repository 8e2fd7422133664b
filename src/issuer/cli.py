"""issuer CLI.

Subcommands:
  post FILE        -> create issues from a YAML batch (or preview with --dry)
  runs list        -> list recorded runs (newest first)
  runs show ID     -> print one run record as JSON
  runs delete ID   -> delete one run record
  runs clean       -> delete every run record
  runs cleanup ID  -> close/delete the artifacts a run created
  doctor           -> diagnostics (config, token, target project, API access)
"""

from __future__ import annotations

import argparse
import json
import os
from typing import Any

from . import __version__
from .cleanup import cleanup_run
from .config import CONFIG_DEFAULT, IssuerConfig
from .core import BatchOverrides, Issuer, resolve_project
from .env_auth import EnvAuthConfig, create_env_auth_manager
from .errors import ConfigError, IssuerError, RunNotFoundError
from .orchestrator import post_file
from .runs import STATUSES, RunTracker
from .runtime import EXIT_FAILURE, EXIT_OK, execute_command, prepare_config
from .sites import create_site, supported_sites
from .ux import print_error, print_header, print_success, print_warning, prompt

_MAX_HELP_WIDTH = 100
PROJ_HELP = "Target project (owner/repo); overrides $meta.proj and ISSUER_REPO"


class _HelpFormatter(argparse.HelpFormatter):
    def __init__(self, prog: str) -> None:
        super().__init__(prog, max_help_position=30, width=_MAX_HELP_WIDTH)


class _FormatterArgumentParser(argparse.ArgumentParser):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("formatter_class", _HelpFormatter)
        super().__init__(*args, **kwargs)


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("--config", help=f"Config file (default: ./{CONFIG_DEFAULT} when present)")


def _build_parser() -> argparse.ArgumentParser:
    p = _FormatterArgumentParser(
        prog="issuer", description="Bulk-create tracker issues from a YAML batch file"
    )
    p.add_argument("--version", action="version", version=f"issuer {__version__}")
    p.add_argument("--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR)")
    p.add_argument("--json-logs", action="store_true", help="Emit structured JSON log lines")
    sub = p.add_subparsers(
        dest="cmd",
        required=True,
        parser_class=_FormatterArgumentParser,
        metavar="<command>",
    )

    pp = sub.add_parser("post", help="Create issues from a batch file")
    _add_common(pp)
    pp.add_argument("file", nargs="?", help="YAML batch file")
    pp.add_argument("--file", dest="file_opt", help="YAML batch file (alternative to positional)")
    pp.add_argument("--proj", help=PROJ_HELP)
    pp.add_argument("--vrsn", help="Default version/milestone for issues without one")
    pp.add_argument("--user", help="Default assignee for issues without one")
    pp.add_argument(
        "--tags",
        help="Comma-separated tags: '+tag' appends to every issue, 'tag' only to untagged ones",
    )
    pp.add_argument(
        "--stub",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Compose bodies from $meta.defaults head/body/tail",
    )
    pp.add_argument("--dry", "--dry-run", dest="dry", action="store_true", help="Print issues, don't post")
    pp.add_argument("--tokenv", help="Name of the environment variable holding the API token")
    pp.add_argument(
        "--auto-versions", "--auto-milestones", dest="auto_versions", action="store_true",
        help="Create missing versions/milestones without prompting",
    )
    pp.add_argument(
        "--auto-tags", "--auto-labels", dest="auto_tags", action="store_true",
        help="Create missing tags/labels without prompting",
    )
    pp.add_argument(
        "--auto-metadata", action="store_true",
        help="Shorthand for --auto-versions --auto-tags",
    )
    pp.add_argument("--summary-json", help="Write the run summary to this JSON file")

    runs = sub.add_parser("runs", help="Inspect and manage recorded runs")
    _add_common(runs)
    rsub = runs.add_subparsers(
        dest="runs_cmd", required=True, parser_class=_FormatterArgumentParser, metavar="<action>"
    )
    rl = rsub.add_parser("list", help="List runs, newest first")
    rl.add_argument("--status", choices=STATUSES)
    rl.add_argument("--limit", type=int)
    rs = rsub.add_parser("show", help="Show one run record")
    rs.add_argument("run_id")
    rd = rsub.add_parser("delete", help="Delete one run record")
    rd.add_argument("run_id")
    rc = rsub.add_parser("clean", help="Delete every run record")
    rc.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    ru = rsub.add_parser("cleanup", help="Close/delete the artifacts a run created")
    ru.add_argument("run_id")
    ru.add_argument("--dry-run", action="store_true", help="Show what would be removed")
    ru.add_argument("--tokenv", help="Name of the environment variable holding the API token")

    doc = sub.add_parser("doctor", help="Run diagnostics (config, token, project access)")
    _add_common(doc)
    doc.add_argument("--proj", help=PROJ_HELP)
    doc.add_argument("--tokenv", help="Name of the environment variable holding the API token")
    doc.add_argument("--offline", action="store_true", help="Skip the API connection test")
    return p


# ---- post -----------------------------------------------------------------
def _cmd_post(cfg: IssuerConfig, args: argparse.Namespace) -> int:
    path = args.file_opt or args.file
    if not path:
        raise ConfigError("No batch file specified. Use 'issuer post FILE' or '--file FILE'")
    overrides = BatchOverrides(
        project=args.proj,
        version=args.vrsn,
        assignee=args.user,
        stub=args.stub,
        tags=args.tags,
    )
    summary = post_file(
        Issuer(cfg),
        path,
        overrides,
        dry_run=args.dry,
        token_env=args.tokenv,
        summary_path=args.summary_json,
    )
    return EXIT_FAILURE if summary.get("failed") else EXIT_OK


# ---- runs -----------------------------------------------------------------
def _tracker(cfg: IssuerConfig) -> RunTracker:
    return RunTracker(cfg.runs_dir)


def _cmd_runs_list(cfg: IssuerConfig, args: argparse.Namespace) -> int:
    runs = _tracker(cfg).list(status=args.status, limit=args.limit)
    if not runs:
        print("No runs recorded.")
        return EXIT_OK
    print_header(f"{'RUN ID':<34}{'STATUS':<13}{'STARTED':<27}ISSUES")
    for run in runs:
        summary = run.get("summary") or {}
        print(
            f"{run.get('run_id', '?'):<34}{run.get('status', '?'):<13}"
            f"{run.get('started_at', ''):<27}{summary.get('issues_created', 0)}"
        )
    return EXIT_OK


def _cmd_runs_show(cfg: IssuerConfig, args: argparse.Namespace) -> int:
    run = _tracker(cfg).get(args.run_id)
    if run is None:
        raise RunNotFoundError(f"Run not found: {args.run_id}")
    print(json.dumps(run, indent=2))
    return EXIT_OK


def _cmd_runs_delete(cfg: IssuerConfig, args: argparse.Namespace) -> int:
    if not _tracker(cfg).delete(args.run_id):
        raise RunNotFoundError(f"Run not found: {args.run_id}")
    print_success(f"Deleted run {args.run_id}")
    return EXIT_OK


def _cmd_runs_clean(cfg: IssuerConfig, args: argparse.Namespace) -> int:
    tracker = _tracker(cfg)
    if not args.yes:
        answer = prompt(f"Delete every run record under {tracker.logs_dir}? [y/N]: ")
        if answer.strip().lower() not in ("y", "yes"):
            print_warning("Aborted; nothing deleted")
            return EXIT_OK
    removed = tracker.clean()
    print_success(f"Removed {removed} run record(s)")
    return EXIT_OK


def _cmd_runs_cleanup(cfg: IssuerConfig, args: argparse.Namespace) -> int:
    site = create_site(
        cfg.site,
        token_env=args.tokenv or cfg.token_env,
        dry_run=args.dry_run,
        api_url=cfg.github_api_url,
        graphql_url=cfg.github_graphql_url,
        load_dotenv=cfg.env_auth_load_dotenv,
        dotenv_path=cfg.env_auth_dotenv_path,
    )
    report = cleanup_run(args.run_id, site, _tracker(cfg), dry_run=args.dry_run)
    print(
        f"Closed {report.closed_issues} issue(s), deleted {report.deleted_versions} "
        f"version(s) and {report.deleted_tags} tag(s)"
    )
    return EXIT_FAILURE if report.errors else EXIT_OK


def _cmd_runs(cfg: IssuerConfig, args: argparse.Namespace) -> int:
    handlers = {
        "list": _cmd_runs_list,
        "show": _cmd_runs_show,
        "delete": _cmd_runs_delete,
        "clean": _cmd_runs_clean,
        "cleanup": _cmd_runs_cleanup,
    }
    return handlers[args.runs_cmd](cfg, args)


# ---- doctor ---------------------------------------------------------------
def _doctor_config_check(cfg: IssuerConfig, problems: list[str]) -> None:
    source = cfg.source_file or "built-in defaults"
    print(f"[doctor] config: {source}")
    print(f"[doctor] site: {cfg.site}")
    if cfg.site not in supported_sites():
        problems.append(f"Unsupported site '{cfg.site}' (available: {', '.join(supported_sites())})")


def _doctor_project_check(cfg: IssuerConfig, args: argparse.Namespace, warnings: list[str]) -> str | None:
    project = resolve_project(args.proj, None, cfg)
    print(f"[doctor] project: {project or 'None'}")
    if not project:
        warnings.append("No target project configured (--proj, $meta.proj, ISSUER_REPO or ISSUER_PROJ)")
    return project


def _doctor_token_check(cfg: IssuerConfig, args: argparse.Namespace, problems: list[str]) -> bool:
    manager = create_env_auth_manager(
        EnvAuthConfig(
            load_dotenv=cfg.env_auth_load_dotenv,
            dotenv_path=cfg.env_auth_dotenv_path,
            token_env_var=args.tokenv or cfg.token_env,
        )
    )
    token = manager.get_token()
    print(f"[doctor] token: {'present' if token else 'missing'}")
    if manager.dotenv_loaded:
        print("[doctor] .env file loaded")
    if not token:
        problems.append(manager.missing_token_message())
    return bool(token)


def _doctor_runs_check(cfg: IssuerConfig) -> None:
    tracker = _tracker(cfg)
    count = len(tracker.list())
    print(f"[doctor] run ledger: {tracker.logs_dir} ({count} run(s))")


def _doctor_connection_check(cfg: IssuerConfig, args: argparse.Namespace, problems: list[str]) -> None:
    try:
        site = create_site(
            cfg.site,
            token_env=args.tokenv or cfg.token_env,
            api_url=cfg.github_api_url,
            graphql_url=cfg.github_graphql_url,
            load_dotenv=cfg.env_auth_load_dotenv,
            dotenv_path=cfg.env_auth_dotenv_path,
        )
        site.test_connection()
        print("[doctor] API connection: ok")
    except IssuerError as exc:
        problems.append(f"API connection failed: {exc}")


def _doctor_emit_results(warnings: list[str], problems: list[str]) -> int:
    if warnings:
        print_warning(f"{len(warnings)} warning(s) detected:")
        for w in warnings:
            print(f"  • {w}")
    if problems:
        print_error(f"{len(problems)} problem(s) detected:")
        for p in problems:
            print(f"  • {p}")
        return EXIT_FAILURE
    if warnings:
        print_warning("Completed with warnings (see above)")
    else:
        print_success("All checks passed!")
    return EXIT_OK


def _cmd_doctor(cfg: IssuerConfig, args: argparse.Namespace) -> int:
    problems: list[str] = []
    warnings: list[str] = []
    _doctor_config_check(cfg, problems)
    _doctor_project_check(cfg, args, warnings)
    has_token = _doctor_token_check(cfg, args, problems)
    _doctor_runs_check(cfg)
    if has_token and not args.offline and not os.environ.get("ISSUER_OFFLINE"):
        _doctor_connection_check(cfg, args, problems)
    return _doctor_emit_results(warnings, problems)


def _build_handlers(args: argparse.Namespace, cfg: IssuerConfig) -> dict[str, Any]:
    return {
        "post": lambda: _cmd_post(cfg, args),
        "runs": lambda: _cmd_runs(cfg, args),
        "doctor": lambda: _cmd_doctor(cfg, args),
    }


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    def _run() -> int:
        cfg = prepare_config(args)
        handler = _build_handlers(args, cfg).get(args.cmd)
        if handler is None:  # pragma: no cover - argparse enforces valid choices
            parser.print_help()
            return EXIT_FAILURE
        return int(handler())

    return execute_command(_run, args.cmd)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
