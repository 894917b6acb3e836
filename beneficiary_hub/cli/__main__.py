from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Callable
from pathlib import Path

from dotenv import load_dotenv

from beneficiary_hub.config.loader import DEFAULT_CONFIG_PATH, AppConfig, ConfigError, load_config
from beneficiary_hub.db.postgres import connect, init_schema
from beneficiary_hub.db.store import DocumentStore, MemoryStore, NotFoundError, StoreError
from beneficiary_hub.excel.reader import SheetReadError, UnsupportedFileError, load_sheet
from beneficiary_hub.logging.error_log import ErrorLogBuffer
from beneficiary_hub.logging.init import log_summary, set_debug, setup_logging
from beneficiary_hub.models.beneficiary import RecordValidationError, to_text
from beneficiary_hub.models.column_mapping import MappingError, parse_mapping_args
from beneficiary_hub.models.fields import FIELD_KEYS
from beneficiary_hub.models.team import Session
from beneficiary_hub.services import beneficiaries, duplicates, form_links, teams
from beneficiary_hub.services.authorization import AuthorizationError
from beneficiary_hub.services.auto_mapping import suggest_mappings
from beneficiary_hub.services.bulk import BulkOperationError
from beneficiary_hub.services.exporter import export_team
from beneficiary_hub.services.form_links import FormLinkError
from beneficiary_hub.services.importer import import_sheet
from beneficiary_hub.services.summary import (
    render_bulk_summary,
    render_import_summary,
    render_promotion_summary,
    strip_label,
)
from beneficiary_hub.services.teams import TeamError
from beneficiary_hub.services.validation import ApplicationValidationError

"""CLI entrypoint.

Flow: .env -> config -> store (PostgreSQL, or in-memory mock mode) ->
session (acting user + selected team) -> sub-command.

Exit codes: 0 success, 1 fatal, 2 partial failure (an aborted bulk
operation or a promotion with failed items).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

MOCK_USER_ID = "mock-user"
MOCK_USER_EMAIL = "mock@localhost"

# 致命扱いの例外 (メッセージのみ表示)
FATAL_ERRORS = (
    AuthorizationError,
    ApplicationValidationError,
    FormLinkError,
    MappingError,
    NotFoundError,
    RecordValidationError,
    SheetReadError,
    TeamError,
    UnsupportedFileError,
    ValueError,
)

CommandFn = Callable[[argparse.Namespace, AppConfig, DocumentStore, Session, ErrorLogBuffer], int]


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv.

    override=True により .env の値で既存環境変数を上書きし、PostgreSQL 接続情報を最優先化。
    """
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _open_store(cfg: AppConfig, logger: logging.Logger) -> DocumentStore:
    """PostgreSQL store, or MemoryStore when disabled / unreachable."""
    # テスト等で完全に無効化したい場合 DISABLE_DB_CONNECT=1
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> mock mode")
        return MemoryStore()
    try:
        return connect(cfg.database)
    except StoreError as db_e:
        if os.getenv("SUPPRESS_DB_WARNING") == "1":
            logger.debug(f"DB connection failed (suppressed warn) -> fallback to mock mode: {db_e}")
        else:
            logger.info(f"DB connection failed -> fallback to mock mode: {db_e}")
        return MemoryStore()


def _session_from(args: argparse.Namespace) -> Session:
    user_id = args.user_id or os.getenv("BENEFICIARY_USER_ID")
    email = args.email or os.getenv("BENEFICIARY_USER_EMAIL")
    team_id = args.team or os.getenv("BENEFICIARY_TEAM_ID")
    return Session(user_id=user_id, email=email.strip().lower() if email else None, team_id=team_id)


def _mock_session(store: DocumentStore, session: Session) -> Session:
    """Mock mode starts empty: give the acting user a scratch team to work in."""
    if not session.is_authenticated:
        session = Session(user_id=MOCK_USER_ID, email=MOCK_USER_EMAIL)
    team = teams.create_team(store, session, "mock", "in-memory scratch team (not persisted)")
    return session.with_team(team.id)


def _confirm(args: argparse.Namespace, prompt: str) -> bool:
    if getattr(args, "yes", False):
        return True
    if not sys.stdin.isatty():
        logging.getLogger("beneficiary_hub").warning(f"{prompt} -> not confirmed (pass --yes)")
        return False
    answer = input(f"{prompt} [y/N] ")
    return answer.strip().lower() in ("y", "yes")


def _parse_assignments(pairs: list[str]) -> dict[str, str]:
    values: dict[str, str] = {}
    for raw in pairs:
        key, sep, value = raw.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"invalid assignment {raw!r} (expected FIELD=VALUE)")
        values[key.strip()] = value
    return values


def _print_records(records, limit: int | None = None) -> None:
    shown = records if limit is None else records[:limit]
    print("\t".join(["id", *FIELD_KEYS]))
    for r in shown:
        print("\t".join([r.id or "", *(to_text(v) for v in r.schema_values().values())]))


# --- commands -------------------------------------------------------------

def _cmd_init_db(args, cfg, store, session, errors) -> int:
    if store.mode != "live":
        print("init-db: no database connection (mock mode)")
        return EXIT_FATAL
    init_schema(store)
    print("init-db: schema ready")
    return EXIT_SUCCESS_ALL


def _cmd_register(args, cfg, store, session, errors) -> int:
    new = teams.register_user(store, args.new_email, args.name)
    print(f"user_id={new.user_id} email={new.email}")
    return EXIT_SUCCESS_ALL


def _cmd_inspect(args, cfg, store, session, errors) -> int:
    path = Path(args.file)
    sheet = load_sheet(path, args.sheet or cfg.imports.sheet, cfg.imports.placeholder_prefix)
    print(f"FILE: {path.name} sheets={sheet.available_sheets}")
    print(f"  SHEET: {sheet.sheet_name} rows={len(sheet.records)}")
    suggestions = suggest_mappings(sheet.headers)
    for d in sheet.header_descriptors:
        s = suggestions.get(d.header)
        hint = f" -> {s.field_key} ({'exact' if s.exact else 'approx'})" if s else ""
        print(f"    {d.cell_ref}: {d.header}{hint}")
    if sheet.duplicate_headers:
        print(f"  duplicate_headers={sheet.duplicate_headers}")
    for row in sheet.records[:3]:
        print("    sample_row=", row)
    return EXIT_SUCCESS_ALL


def _cmd_import(args, cfg, store, session, errors) -> int:
    path = Path(args.file)
    mapping = parse_mapping_args(args.map) if args.map else None
    try:
        result = import_sheet(
            store,
            session,
            path,
            mapping=mapping,
            sheet_name=args.sheet or cfg.imports.sheet,
            auto_map=not args.no_auto_map,
            exact_only=args.exact_only,
            placeholder_prefix=cfg.imports.placeholder_prefix,
            batch_size=args.batch_size or cfg.batch_size,
            progress=not args.no_progress,
            errors=errors,
        )
    except BulkOperationError as e:
        log_summary(f"op=import file={path.name} requested={e.attempted} inserted={e.completed} aborted=1")
        return EXIT_PARTIAL_FAILURE
    log_summary(strip_label(render_import_summary(result)))
    return EXIT_SUCCESS_ALL


def _cmd_list(args, cfg, store, session, errors) -> int:
    records = beneficiaries.load_records(store, session)
    if args.search:
        records = beneficiaries.search_records(records, args.search)
    if args.sort:
        records = beneficiaries.sort_records(records, args.sort, "desc" if args.desc else "asc")
    _print_records(records, args.limit)
    print(f"total={len(records)}")
    return EXIT_SUCCESS_ALL


def _cmd_export(args, cfg, store, session, errors) -> int:
    output = Path(args.output or cfg.export.file_name)
    count = export_team(
        store,
        session,
        output,
        cfg.export,
        sort_field=args.sort,
        sort_direction=("desc" if args.desc else "asc") if args.sort else None,
    )
    print(f"exported {count} records -> {output}")
    return EXIT_SUCCESS_ALL


def _bulk(label: str, run: Callable[[], object]) -> int:
    try:
        result = run()
    except BulkOperationError as e:
        log_summary(f"op={label} requested={e.attempted} completed={e.completed} aborted=1")
        return EXIT_PARTIAL_FAILURE
    if result is not None:
        log_summary(strip_label(render_bulk_summary(result)))
    return EXIT_SUCCESS_ALL


def _cmd_dedupe(args, cfg, store, session, errors) -> int:
    def run():
        outcome = duplicates.remove_duplicates(
            store,
            session,
            lambda n: _confirm(args, f"Remove {n} duplicate records?"),
            chunk_size=cfg.batch_size,
            progress=not args.no_progress,
        )
        print(f"groups={outcome.groups} candidates={outcome.candidates} removed={outcome.removed}")
        return outcome.bulk
    return _bulk("dedupe", run)


def _cmd_delete(args, cfg, store, session, errors) -> int:
    if not _confirm(args, f"Delete {len(args.ids)} records?"):
        return EXIT_SUCCESS_ALL
    return _bulk(
        "delete",
        lambda: beneficiaries.delete_records(
            store, session, args.ids, chunk_size=cfg.batch_size, progress=not args.no_progress
        ),
    )


def _cmd_clear(args, cfg, store, session, errors) -> int:
    return _bulk(
        "clear",
        lambda: beneficiaries.clear_team_data(
            store,
            session,
            lambda n: _confirm(args, f"Delete all {n} records of this team?"),
            chunk_size=cfg.batch_size,
            progress=not args.no_progress,
        ),
    )


def _cmd_edit(args, cfg, store, session, errors) -> int:
    record = beneficiaries.update_record(store, session, args.id, _parse_assignments(args.set))
    _print_records([record])
    return EXIT_SUCCESS_ALL


def _cmd_mass_edit(args, cfg, store, session, errors) -> int:
    changes = _parse_assignments(args.set)
    return _bulk(
        "update",
        lambda: beneficiaries.mass_update(
            store, session, args.ids, changes, chunk_size=cfg.batch_size, progress=not args.no_progress
        ),
    )


def _cmd_team(args, cfg, store, session, errors) -> int:
    action = args.team_command
    if action == "create":
        team = teams.create_team(store, session, args.name, args.description)
        print(f"team_id={team.id} name={team.name}")
    elif action == "list":
        for team in teams.list_teams(store, session):
            marker = "*" if team.id == session.team_id else " "
            print(f"{marker} {team.id}\t{team.name}\t{team.description or ''}")
    elif action == "update":
        team = teams.update_team(store, session, args.team_id, name=args.name, description=args.description)
        print(f"team_id={team.id} name={team.name}")
    elif action == "delete":
        if not _confirm(args, f"Delete team {args.team_id} and all of its data?"):
            return EXIT_SUCCESS_ALL
        teams.delete_team(store, session, args.team_id)
        print(f"deleted team {args.team_id}")
    elif action == "members":
        for m in teams.list_members(store, session, args.team_id or session.team_id):
            state = "pending" if m.pending else "active"
            print(f"{m.id}\t{m.email}\t{m.role.value}\t{state}")
    elif action == "add-member":
        m = teams.add_member(store, session, session.team_id, args.member_email, args.role)
        print(f"membership_id={m.id} email={m.email} role={m.role.value} pending={m.pending}")
    elif action == "remove-member":
        teams.remove_member(store, session, session.team_id, args.membership_id)
        print(f"removed {args.membership_id}")
    elif action == "set-role":
        m = teams.update_member_role(store, session, session.team_id, args.membership_id, args.role)
        print(f"membership_id={m.id} role={m.role.value}")
    elif action == "invitations":
        for m in teams.pending_invitations(store, session):
            print(f"{m.id}\tteam={m.team_id}\trole={m.role.value}")
    elif action == "accept":
        m = teams.accept_invitation(store, session, args.membership_id)
        print(f"joined team {m.team_id} as {m.role.value}")
    elif action == "decline":
        teams.decline_invitation(store, session, args.membership_id)
        print(f"declined {args.membership_id}")
    return EXIT_SUCCESS_ALL


def _cmd_links(args, cfg, store, session, errors) -> int:
    action = args.links_command
    if action == "create":
        link = form_links.create_form_link(store, session, args.name)
        print(f"link_id={link.id} url={form_links.form_link_url(cfg.forms.base_url, link.team_id, link.id)}")
    elif action == "list":
        for link in form_links.list_form_links(store, session):
            print(f"{link.id}\t{link.name}\tsubmissions={link.submissions_count}")
    elif action == "delete":
        if not _confirm(args, f"Delete form link {args.link_id} and all of its submissions?"):
            return EXIT_SUCCESS_ALL
        removed = form_links.delete_form_link(store, session, args.link_id)
        print(f"deleted link {args.link_id} ({removed} submissions)")
    elif action == "url":
        print(form_links.form_link_url(cfg.forms.base_url, session.team_id or "", args.link_id))
    elif action == "submissions":
        subs = form_links.list_submissions(store, session, args.link_id)
        if args.search:
            subs = form_links.search_submissions(subs, args.search)
        if args.sort:
            subs = form_links.sort_submissions(subs, args.sort, "desc" if args.desc else "asc")
        _print_records(subs)
        print(f"total={len(subs)}")
    elif action == "promote":
        result = form_links.promote_submissions(store, session, args.submission_ids, errors=errors)
        log_summary(strip_label(render_promotion_summary(result)))
        return EXIT_PARTIAL_FAILURE if result.partial else EXIT_SUCCESS_ALL
    return EXIT_SUCCESS_ALL


def _cmd_apply(args, cfg, store, session, errors) -> int:
    if "/apply/" in args.target:
        team_id, link_id = form_links.parse_form_link_url(args.target)
    else:
        team_id, link_id = args.target, None
    link_id = args.link or link_id
    saved = form_links.submit_application(
        store,
        team_id,
        link_id,
        _parse_assignments(args.field),
        args.submission,
        minimum_age=cfg.forms.minimum_age,
    )
    print(f"submission_id={saved.id}")
    return EXIT_SUCCESS_ALL


COMMANDS: dict[str, CommandFn] = {
    "init-db": _cmd_init_db,
    "register": _cmd_register,
    "inspect": _cmd_inspect,
    "import": _cmd_import,
    "list": _cmd_list,
    "export": _cmd_export,
    "dedupe": _cmd_dedupe,
    "delete": _cmd_delete,
    "clear": _cmd_clear,
    "edit": _cmd_edit,
    "mass-edit": _cmd_mass_edit,
    "team": _cmd_team,
    "links": _cmd_links,
    "apply": _cmd_apply,
}

# チーム選択不要のコマンド
NO_TEAM_COMMANDS = {"init-db", "register", "inspect", "apply"}


def _parse_args(argv: list[str]) -> argparse.Namespace:
    field_choices = list(FIELD_KEYS)
    p = argparse.ArgumentParser(prog="beneficiary-hub", description="Team-scoped beneficiary data management")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Path to the YAML config")
    p.add_argument("--user-id", help="Acting user id (default: $BENEFICIARY_USER_ID)")
    p.add_argument("--email", help="Acting user email (default: $BENEFICIARY_USER_EMAIL)")
    p.add_argument("--team", help="Team id to work in (default: $BENEFICIARY_TEAM_ID or first team)")
    p.add_argument("--no-progress", action="store_true", help="Disable the progress bar")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the database tables")

    reg = sub.add_parser("register", help="Register a user")
    reg.add_argument("new_email", metavar="EMAIL")
    reg.add_argument("--name")

    ins = sub.add_parser("inspect", help="Show sheets, headers, suggested mappings and sample rows")
    ins.add_argument("file")
    ins.add_argument("--sheet")

    imp = sub.add_parser("import", help="Import a spreadsheet into the team's beneficiary list")
    imp.add_argument("file")
    imp.add_argument("--sheet")
    imp.add_argument("--map", action="append", default=[], metavar="COLUMN=FIELD")
    imp.add_argument("--exact-only", action="store_true", help="Apply only exact auto-mapping suggestions")
    imp.add_argument("--no-auto-map", action="store_true")
    imp.add_argument("--batch-size", type=int)

    ls = sub.add_parser("list", help="List beneficiary records")
    ls.add_argument("--search")
    ls.add_argument("--sort", choices=field_choices)
    ls.add_argument("--desc", action="store_true")
    ls.add_argument("--limit", type=int)

    ex = sub.add_parser("export", help="Export records to .xlsx")
    ex.add_argument("--output", "-o")
    ex.add_argument("--sort", choices=field_choices)
    ex.add_argument("--desc", action="store_true")

    dd = sub.add_parser("dedupe", help="Remove duplicate records")
    dd.add_argument("--yes", action="store_true")

    de = sub.add_parser("delete", help="Delete records by id")
    de.add_argument("ids", nargs="+")
    de.add_argument("--yes", action="store_true")

    cl = sub.add_parser("clear", help="Delete all records of the team")
    cl.add_argument("--yes", action="store_true")

    ed = sub.add_parser("edit", help="Edit one record")
    ed.add_argument("id")
    ed.add_argument("set", nargs="+", metavar="FIELD=VALUE")

    me = sub.add_parser("mass-edit", help="Apply the same edit to many records (blank values keep the old value)")
    me.add_argument("--ids", nargs="+", required=True)
    me.add_argument("--set", nargs="+", required=True, metavar="FIELD=VALUE")

    tm = sub.add_parser("team", help="Teams and members")
    tsub = tm.add_subparsers(dest="team_command", required=True)
    tc = tsub.add_parser("create")
    tc.add_argument("name")
    tc.add_argument("--description")
    tsub.add_parser("list")
    tu = tsub.add_parser("update")
    tu.add_argument("team_id")
    tu.add_argument("--name")
    tu.add_argument("--description")
    td = tsub.add_parser("delete")
    td.add_argument("team_id")
    td.add_argument("--yes", action="store_true")
    tms = tsub.add_parser("members")
    tms.add_argument("team_id", nargs="?")
    ta = tsub.add_parser("add-member")
    ta.add_argument("member_email", metavar="EMAIL")
    ta.add_argument("--role", default="member", choices=["admin", "member"])
    tr = tsub.add_parser("remove-member")
    tr.add_argument("membership_id")
    ts = tsub.add_parser("set-role")
    ts.add_argument("membership_id")
    ts.add_argument("role", choices=["admin", "member"])
    tsub.add_parser("invitations")
    tac = tsub.add_parser("accept")
    tac.add_argument("membership_id")
    tdc = tsub.add_parser("decline")
    tdc.add_argument("membership_id")

    lk = sub.add_parser("links", help="Form links and submissions")
    lsub = lk.add_subparsers(dest="links_command", required=True)
    lc = lsub.add_parser("create")
    lc.add_argument("name")
    lsub.add_parser("list")
    ld = lsub.add_parser("delete")
    ld.add_argument("link_id")
    ld.add_argument("--yes", action="store_true")
    lu = lsub.add_parser("url")
    lu.add_argument("link_id")
    lss = lsub.add_parser("submissions")
    lss.add_argument("link_id")
    lss.add_argument("--search")
    lss.add_argument("--sort", choices=field_choices)
    lss.add_argument("--desc", action="store_true")
    lp = lsub.add_parser("promote")
    lp.add_argument("submission_ids", nargs="+")

    ap = sub.add_parser("apply", help="Submit a public application")
    ap.add_argument("target", help="Form URL (<base>/apply/<team>/<link>) or team id")
    ap.add_argument("--link", help="Form link id (when TARGET is a team id)")
    ap.add_argument("--field", action="append", default=[], metavar="FIELD=VALUE")
    ap.add_argument("--submission", help="Existing submission id to update")

    return p.parse_args(argv)


def _run(args: argparse.Namespace, cfg: AppConfig, store: DocumentStore, errors: ErrorLogBuffer) -> int:
    logger = logging.getLogger("beneficiary_hub")
    session = _session_from(args)
    if store.mode == "mock" and args.command not in ("init-db", "register", "apply"):
        session = _mock_session(store, session)
    elif args.command not in NO_TEAM_COMMANDS:
        if session.team_id:
            session = teams.select_team(store, session, session.team_id)
        else:
            session = teams.default_team(store, session)
    logger.debug(f"mode={store.mode} user={session.user_id} team={session.team_id}")
    return COMMANDS[args.command](args, cfg, store, session, errors)


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # NOTE: [] が与えられた場合に sys.argv[1:] が混入しないよう None のときのみ読む
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    # .env を最優先で読み込む (DB 接続パラメータ優先順位保証)
    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.debug:
        set_debug(True)
        logger.debug("debug mode enabled")

    errors = ErrorLogBuffer(Path(cfg.error_log_dir), cfg.zone)
    store = _open_store(cfg, logger)
    if store.mode == "mock":
        logger.info("mode=mock: changes are not persisted")
    try:
        code = _run(args, cfg, store, errors)
    except FATAL_ERRORS as e:
        logger.error(f"{args.command}: {e}")
        code = EXIT_FATAL
    except StoreError as e:
        # 原因は区別せず汎用メッセージ
        logger.debug(f"store error: {e}")
        logger.error(f"{args.command}: storage operation failed: {e}")
        errors.record(args.command, "STORE_ERROR", str(e))
        code = EXIT_FATAL
    finally:
        store.close()
        log_path = errors.flush()
        if log_path is not None:
            logger.info(f"error log written: {log_path}")
    return code


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
