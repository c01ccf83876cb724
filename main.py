import sys
import json
import asyncio
import argparse
from typing import Any, Dict, List, Optional

# --- Settings/Logging ---
from hackzilla.logging.setup import setup_logging
from hackzilla.config.settings import settings

setup_logging()

from loguru import logger

from rich import print
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from hackzilla.models.enums import Meal, MealStatus, TeamStatus, UserRole
from hackzilla.models.team import Team
from hackzilla.models.user import User
from hackzilla.models.results import TeamWriteResult
from hackzilla.repository.errors import CheckinError
from hackzilla.repository.team_repository import TeamRepository
from hackzilla.services.account_service import AccountService
from hackzilla.services.scan_service import ScanService, check_transition, encode_badge
from hackzilla.services.stats import compute_stats
from hackzilla.storage.session_store import JsonFileSessionStore
from hackzilla.storage.supabase_store import (
    SupabaseAuthBackend,
    SupabaseRecordStore,
    initialize_supabase,
)

console = Console()


def parse_member(value: str) -> Dict[str, str]:
    """'Name:College' on the command line. Validated by the repository."""
    name, sep, college = value.partition(":")
    if not sep:
        raise argparse.ArgumentTypeError(f"Member '{value}' must look like 'Name:College'.")
    return {"name": name, "college_name": college}


def load_team_file(path: str) -> List[Dict[str, Any]]:
    """A JSON list of team objects for bulk registration."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            payload = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise CheckinError(f"Could not read teams from {path}: {e}") from e
    if not isinstance(payload, list):
        raise CheckinError(f"{path} must contain a JSON list of teams.")
    return payload


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hackzilla", description="Hackzilla event check-in")
    sub = parser.add_subparsers(dest="command", required=True)

    list_cmd = sub.add_parser("list", help="List registered teams")
    list_cmd.add_argument("--search", default="", help="Filter by id, name or leader")

    show_cmd = sub.add_parser("show", help="Show one team and its badge payload")
    show_cmd.add_argument("team_id")

    register = sub.add_parser("register", help="Register a new team")
    register.add_argument("--name", required=True)
    register.add_argument("--leader", required=True)
    register.add_argument("--member", action="append", default=[], type=parse_member)
    register.add_argument(
        "--status", choices=[s.value for s in TeamStatus], default=TeamStatus.INACTIVE.value
    )

    edit = sub.add_parser("edit", help="Change a team's details, status or members")
    edit.add_argument("team_id")
    edit.add_argument("--name")
    edit.add_argument("--leader")
    edit.add_argument("--status", choices=[s.value for s in TeamStatus])
    edit.add_argument(
        "--member",
        action="append",
        type=parse_member,
        help="Replaces the whole member list when given",
    )

    register_many = sub.add_parser("register-many", help="Register teams from a JSON file")
    register_many.add_argument("path", help="JSON list of {name, leader, status, members}")

    delete = sub.add_parser("delete", help="Delete a team")
    delete.add_argument("team_id")

    meal = sub.add_parser("meal", help="Set a meal status by team id")
    meal.add_argument("team_id")
    meal.add_argument("meal", choices=[m.value for m in Meal])
    meal.add_argument("status", choices=[s.value for s in MealStatus])

    scan = sub.add_parser("scan", help="Apply a scanned badge payload")
    scan.add_argument("badge", help="Badge JSON text as read from the QR code")
    scan.add_argument("meal", choices=[m.value for m in Meal])
    scan.add_argument(
        "--status", choices=[s.value for s in MealStatus], default=MealStatus.VALID.value
    )

    sub.add_parser("stats", help="Dashboard counts")

    login = sub.add_parser("login", help="Sign in and remember the user")
    login.add_argument("username")
    login.add_argument("password")

    sub.add_parser("logout", help="Forget the signed-in user")
    sub.add_parser("users", help="List accounts (admin only)")

    add_user = sub.add_parser("add-user", help="Create an account (admin only)")
    add_user.add_argument("username")
    add_user.add_argument("password")
    add_user.add_argument("--role", choices=[r.value for r in UserRole], default="volunteer")
    return parser


def render_teams(teams: List[Team]) -> None:
    table = Table(title=f"Teams ({len(teams)})")
    for column in ("ID", "Name", "Leader", "Members", "Status", "Lunch", "Dinner", "Snacks"):
        table.add_column(column)
    for team in teams:
        table.add_row(
            team.id,
            team.name,
            team.leader,
            str(len(team.members)),
            team.status.value,
            *(team.food_status.get(meal).value for meal in Meal),
        )
    console.print(table)


def render_team(team: Team) -> None:
    members = "\n".join(f"- {m.name} ({m.college_name})" for m in team.members) or "- none"
    meals = ", ".join(f"{meal.value}: {team.food_status.get(meal).value}" for meal in Meal)
    print(
        Panel(
            f"[bold]{escape(team.name)}[/bold] led by {escape(team.leader)}\n"
            f"Status: {team.status.value}\nRegistered: {team.created_at:%Y-%m-%d %H:%M}\n"
            f"Members:\n{members}\nMeals: {meals}\n\nBadge: {escape(encode_badge(team))}",
            title=f"Team {team.id}",
        )
    )


def require_user(accounts: AccountService, admin: bool = False) -> Optional[User]:
    user = accounts.current_user()
    if user is None:
        logger.error("Not signed in. Run 'login' first.")
        return None
    if admin and not user.is_admin:
        logger.error(f"{user.username} is not an administrator.")
        return None
    return user


def report_write(result: TeamWriteResult) -> None:
    render_team(result.team)
    if not result.is_consistent:
        logger.warning(f"Saved without: {', '.join(result.degraded)}")


async def run(args: argparse.Namespace) -> int:
    client = await initialize_supabase()
    if not client:
        logger.critical("Failed to initialize Supabase client. Exiting.")
        return 1

    store = SupabaseRecordStore(client)
    accounts = AccountService(
        store, SupabaseAuthBackend(client), JsonFileSessionStore(settings.session_file)
    )
    return await execute(args, TeamRepository(store), accounts)


async def execute(
    args: argparse.Namespace, repository: TeamRepository, accounts: AccountService
) -> int:
    """Runs one parsed command. Returns the process exit code."""
    if args.command == "list":
        render_teams(await repository.search(args.search))
    elif args.command == "show":
        team = await repository.get_one(args.team_id)
        if team is None:
            logger.error(f"Team {args.team_id} not found.")
            return 1
        render_team(team)
    elif args.command == "register":
        if not require_user(accounts, admin=True):
            return 1
        result = await repository.create(
            {
                "name": args.name,
                "leader": args.leader,
                "members": args.member,
                "status": args.status,
            }
        )
        report_write(result)
    elif args.command == "edit":
        if not require_user(accounts, admin=True):
            return 1
        patch = {
            field: getattr(args, field)
            for field in ("name", "leader", "status", "member")
            if getattr(args, field) is not None
        }
        if "member" in patch:
            patch["members"] = patch.pop("member")
        if not patch:
            logger.error("Nothing to change. Pass --name, --leader, --status or --member.")
            return 1
        result = await repository.update(args.team_id, patch)
        if result is None:
            logger.error(f"Team {args.team_id} not found.")
            return 1
        report_write(result)
    elif args.command == "register-many":
        if not require_user(accounts, admin=True):
            return 1
        entries = load_team_file(args.path)
        results = await repository.create_many(entries)
        render_teams([r.team for r in results])
        for result in results:
            if not result.is_consistent:
                logger.warning(f"Team {result.team.id} saved without: {', '.join(result.degraded)}")
        print(f"Registered {len(results)} of {len(entries)} teams.")
        if len(results) < len(entries):
            return 1
    elif args.command == "delete":
        if not require_user(accounts, admin=True):
            return 1
        if not await repository.delete(args.team_id):
            return 1
        print(f"Deleted team {args.team_id}.")
    elif args.command == "meal":
        user = require_user(accounts)
        if not user:
            return 1
        team = await repository.get_one(args.team_id)
        if team is None:
            logger.error(f"Team {args.team_id} not found.")
            return 1
        meal, status = Meal(args.meal), MealStatus(args.status)
        check_transition(user.role, team.food_status.get(meal), status)
        updated = await repository.set_meal_status(team.id, meal, status)
        if updated:
            render_team(updated)
    elif args.command == "scan":
        user = require_user(accounts)
        if not user:
            return 1
        updated = await ScanService(repository).scan(args.badge, args.meal, args.status, user)
        if updated is None:
            logger.error("The scanned badge does not match any registered team.")
            return 1
        render_team(updated)
    elif args.command == "stats":
        stats = compute_stats(await repository.get_all())
        print(Panel("\n".join(f"{k}: {v}" for k, v in stats.model_dump().items()), title="Dashboard"))
    elif args.command == "login":
        user = await accounts.authenticate(args.username, args.password)
        if not user:
            return 1
        print(f"Signed in as {user.username} ({user.role.value}).")
    elif args.command == "logout":
        await accounts.logout()
        print("Signed out.")
    elif args.command == "users":
        if not require_user(accounts, admin=True):
            return 1
        table = Table(title="Accounts")
        table.add_column("Username")
        table.add_column("Role")
        for user in await accounts.list_users():
            table.add_row(user.username, user.role.value)
        console.print(table)
    elif args.command == "add-user":
        if not require_user(accounts, admin=True):
            return 1
        user = await accounts.add_user(args.username, args.password, args.role)
        if not user:
            return 1
        print(f"Added {user.role.value} {user.username}.")
    return 0


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the application."""
    args = build_parser().parse_args(argv)
    try:
        return await run(args)
    except CheckinError as e:
        logger.error(str(e))
        return 1


def cli() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Execution interrupted by user (KeyboardInterrupt).")
        sys.exit(0)
    except Exception as e:
        logger.exception(f"Unhandled exception in main execution: {e}")
        sys.exit(1)


if __name__ == "__main__":
    cli()
