"""
Command-line entry point: configure, preview and execute a commit plan.
"""

import argparse
import logging
import random
import signal
import subprocess
import sys
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import DISTRIBUTIONS, Config, load_config, save_config
from .errors import FakeitError, PreconditionError
from .executor import ExecutionContext, ExecutorState, PlanExecutor, handle_signals
from .git import Author, GitBackend, RepositoryInfo
from .messages import MESSAGE_STYLES, load_messages_from_file, message_stats
from .patterns import INTENSITY_MULTIPLIERS, PRESET_PATTERNS
from .planner import build_plan, calculate_stats
from .validation import validate_plan
from .visualizer import Visualizer, bold, muted, render_samples, warn

logger = logging.getLogger(__name__)


def parse_date(date_str: str) -> date:
    """Parse date from various formats."""
    for fmt in ["%Y-%m-%d", "%Y/%m/%d", "%m/%d/%Y"]:
        try:
            return datetime.strptime(date_str, fmt).date()
        except ValueError:
            continue
    raise argparse.ArgumentTypeError(f"Unable to parse date: {date_str}")


def get_git_config(key: str) -> Optional[str]:
    """Get value from Git config."""
    try:
        result = subprocess.run(
            ["git", "config", key], capture_output=True, text=True, check=False
        )
    except OSError:
        return None
    return result.stdout.strip() if result.returncode == 0 else None


def prompt_yes_no(question: str, default: bool = True) -> bool:
    """Prompt user for yes/no with default."""
    suffix = "([yes]/no)" if default else "(yes/[no])"

    while True:
        response = input(f"{question} {suffix}: ").strip().lower()
        if response == "":
            return default
        if response in ["yes", "y"]:
            return True
        if response in ["no", "n"]:
            return False
        print("Please answer 'yes' or 'no'.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fakeit",
        description="Generate a seeded commit plan and replay it as backdated git commits",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    # Date arguments
    parser.add_argument("--start-date", type=parse_date, help="Start date (YYYY-MM-DD)")
    parser.add_argument("--end-date", type=parse_date, help="End date (YYYY-MM-DD)")
    parser.add_argument(
        "--days", type=int, help="Number of days back from the end date (default: 365)"
    )

    # Generation arguments
    parser.add_argument(
        "-c", "--commits", "--max-per-day", dest="max_per_day", type=int,
        help="Maximum commits per day (default: 10)",
    )
    parser.add_argument(
        "-d", "--distribution", choices=DISTRIBUTIONS,
        help="Commit distribution (default: random)",
    )
    parser.add_argument("--seed", help="Seed string for reproducible plans")

    # Contribution graph drawing
    parser.add_argument(
        "--pattern", dest="pattern_preset", choices=sorted(PRESET_PATTERNS),
        help="Draw a preset shape (implies --distribution pattern)",
    )
    parser.add_argument(
        "--pattern-custom",
        help="Draw custom ASCII art, rows separated by '\\n' (implies --distribution pattern)",
    )
    parser.add_argument("--pattern-scale", type=int, help="Pattern scale 1-5")
    parser.add_argument("--pattern-repeat", type=int, help="Pattern repetitions 1-10")
    parser.add_argument(
        "--pattern-intensity", choices=list(INTENSITY_MULTIPLIERS),
        help="Pattern intensity",
    )

    # Messages
    parser.add_argument(
        "-s", "--message-style", choices=MESSAGE_STYLES, help="Commit message style"
    )
    parser.add_argument(
        "--messages-file", type=Path, help="File with one custom commit message per line"
    )

    # Git arguments
    parser.add_argument("--repo-path", type=Path, help="Path to Git repository")
    parser.add_argument("--user-name", "--author-name", dest="user_name", help="Git author name")
    parser.add_argument(
        "--user-email", "--author-email", dest="user_email", help="Git author email"
    )
    parser.add_argument("--branch", help="Git branch name (default: main)")
    parser.add_argument(
        "--push", action="store_true", help="Push to the remote after committing"
    )

    # Configuration file
    parser.add_argument("--config", type=Path, help="Load configuration from JSON")
    parser.add_argument("--save-config", type=Path, help="Save configuration to JSON")

    # Runtime options
    parser.add_argument(
        "--preview", "--dry-run", dest="preview", action="store_true",
        help="Show the plan without making commits",
    )
    parser.add_argument("-y", "--yes", action="store_true", help="Skip confirmation prompts")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    return parser


def configure_git_author(
    config: Config, args: argparse.Namespace, parser: argparse.ArgumentParser
) -> Config:
    """Configure Git author name and email."""
    # Apply command-line overrides first
    if args.user_name:
        config.user_name = args.user_name
    if args.user_email:
        config.user_email = args.user_email

    if config.user_name and config.user_email:
        return config

    git_name = get_git_config("user.name")
    git_email = get_git_config("user.email")

    missing = []
    if not git_name or not git_email:
        if not config.user_name:
            missing.append("--user-name (Git config user.name not set)")
        if not config.user_email:
            missing.append("--user-email (Git config user.email not set)")
        parser.error(f"Required: {', '.join(missing)}")

    print("Git configuration detected:")
    print(f"  Name:  {git_name}")
    print(f"  Email: {git_email}")

    if not (config.yes or prompt_yes_no("Use these values for commits?")):
        if not config.user_name:
            missing.append("--user-name")
        if not config.user_email:
            missing.append("--user-email")
        parser.error(f"{' and '.join(missing)} required")

    config.user_name = config.user_name or git_name
    config.user_email = config.user_email or git_email
    return config


def apply_cli_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Apply command-line argument overrides to config."""
    if args.end_date:
        config.end_date = args.end_date

    if args.start_date:
        config.start_date = args.start_date
    elif args.days is not None:
        config.start_date = config.end_date - timedelta(days=max(args.days, 1) - 1)

    for name in [
        "max_per_day",
        "distribution",
        "seed",
        "pattern_preset",
        "pattern_custom",
        "pattern_scale",
        "pattern_repeat",
        "pattern_intensity",
        "message_style",
        "repo_path",
        "branch",
    ]:
        value = getattr(args, name)
        if value is not None:
            setattr(config, name, value)

    if (args.pattern_preset or args.pattern_custom) and not args.distribution:
        config.distribution = "pattern"

    if args.messages_file:
        config.custom_messages = load_messages_from_file(args.messages_file)

    for flag in ["preview", "push", "verbose", "yes"]:
        if getattr(args, flag):
            setattr(config, flag, True)

    return config


def print_warnings(warnings: List[str]) -> None:
    for warning in warnings:
        print(warn(f"Warning: {warning}"))


def print_summary(config: Config, plan) -> None:
    stats = calculate_stats(plan)
    print(bold("Commit Plan"))
    print(f"  Date range:     {config.start_date} to {config.end_date} ({stats.total_days} days)")
    print(f"  Distribution:   {config.distribution} (max {config.max_per_day}/day)")
    corpus = message_stats(config.message_style, config.custom_messages)
    print(f"  Message style:  {corpus['style']} ({corpus['total_messages']} messages)")
    print(f"  Author:         {config.user_name} <{config.user_email}>")
    print(f"  Repository:     {config.repo_path} ({config.branch})")
    if config.seed:
        print(f"  Seed:           {config.seed}")
    print(f"  Total commits:  {stats.total_commits}")


def print_repository(info: RepositoryInfo) -> None:
    print(f"\nTarget repository: {info.path}")
    print(f"  Branch:         {info.branch}")
    print(f"  Commits:        {info.total_commits}")
    if info.remote:
        print(f"  Remote:         {info.remote} ({info.remote_url or 'no url'})")
    else:
        print("  Remote:         none")


def ensure_repository(backend: GitBackend, config: Config) -> bool:
    """Make sure the target is a git repository, initializing it if allowed."""
    if backend.is_repository():
        return True

    print(f"No git repository at {config.repo_path}")
    if not (config.yes or prompt_yes_no("Initialize a new repository here?")):
        return False

    backend.init_repository(config.branch)
    print(f"Initialized repository on branch {config.branch}")
    return True


def run(config: Config) -> int:
    """Generate, preview and execute the plan described by config."""
    print("Generating commit plan...")
    plan = build_plan(config)

    check = validate_plan(plan, config.max_per_day)
    print_warnings(check.warnings)
    if not check.valid:
        for error in check.errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    print()
    print_summary(config, plan)

    if config.preview:
        print("\n" + Visualizer(plan).render())
        print("\n" + render_samples(plan))
        print(muted("\nPreview only, no commits were created."))
        return 0

    backend = GitBackend(config.repo_path)
    if not ensure_repository(backend, config):
        print("Aborted.")
        return 1

    print_repository(backend.repository_info())

    if not (config.yes or prompt_yes_no("\nProceed with creating commits?")):
        print("Aborted.")
        return 0

    context = ExecutionContext()
    executor = PlanExecutor(
        backend,
        Author(config.user_name, config.user_email),
        context=context,
        rng=random.Random(config.seed) if config.seed else None,
    )

    with handle_signals(context):
        result = executor.execute(plan)

    print()
    if result.success:
        print(
            bold(f"Created {result.successful_commits} commits")
            + muted(f" in {result.duration:.1f}s")
        )
    else:
        print(
            warn(
                f"Run {result.state.value}: {result.successful_commits} of "
                f"{result.total_commits} commits created, {result.failed_commits} failed"
            )
        )
        if result.restored:
            print("Repository restored to its state before the run.")
    for error in result.errors[:10]:
        print(muted(f"  {error}"), file=sys.stderr)
    if len(result.errors) > 10:
        print(muted(f"  ... and {len(result.errors) - 10} more errors"), file=sys.stderr)

    if result.state == ExecutorState.INTERRUPTED:
        return 128 + (context.token.signum or signal.SIGINT)
    if not result.success:
        return 1

    if config.push:
        if backend.has_remote():
            print(f"Pushing {config.branch}...")
            backend.push(config.branch)
        else:
            print(warn("No remote configured, skipping push."))
    else:
        print(f"\nRepository location: {config.repo_path}")
        print("To push to GitHub:")
        print(f"  cd {config.repo_path}")
        print("  git remote add origin <url>")
        print(f"  git push -u origin {config.branch}")

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        # Load or create configuration
        config = load_config(args.config)

        # Apply command-line overrides, then fill in the author
        config = apply_cli_overrides(config, args)
        config = configure_git_author(config, args, parser)

        # Validate after all modifications
        print_warnings(config.validate())
    except FakeitError as e:
        parser.error(str(e))

    # Save config if requested
    if args.save_config:
        save_config(config, args.save_config)
        print(f"Configuration saved to {args.save_config}")

    try:
        return run(config)
    except PreconditionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except FakeitError as e:
        logger.debug("Run failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nAborted.")
        return 128 + signal.SIGINT


if __name__ == "__main__":
    sys.exit(main())
