"""Command-line interface for stackwright.

Usage:
    stackwright deploy vpc db -c config.yml
    stackwright deploy -c config.yml -t vpc::templates/vpc.yml -t db::s3://bucket/db.yml
    stackwright deploy --all --repo git@github.com:org/infra.git -c config.yml
    stackwright status
    stackwright outputs vpc

The config path defaults to STACKWRIGHT_CONFIG or ./config.yml. With --repo, the
repository is cloned first and both the config and every plain template path
are read from it.
"""

# ruff: noqa: T201 — print is the correct output mechanism for a CLI

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from stackwright.backends.cloudformation import CloudFormationBackend
from stackwright.cloud.config import AwsSettings
from stackwright.config import DEFAULT_CONFIG, load_config, parse_config
from stackwright.dispatcher import Dispatcher
from stackwright.errors import MalformedSourceError, StackwrightError
from stackwright.models import InvocationSummary, Job, RequestKind
from stackwright.registry import StackRegistry
from stackwright.renderer import TemplateRenderer
from stackwright.repo import Repo, SecretProvider
from stackwright.source import parse_source

logger = logging.getLogger(__name__)

# subcommand -> request kind for the commands that go through the dispatcher
_DISPATCHED = {
    "generate": RequestKind.GENERATE,
    "deploy": RequestKind.DEPLOY,
    "update": RequestKind.UPDATE,
    "check": RequestKind.VALIDATE,
    "terminate": RequestKind.TERMINATE,
    "status": RequestKind.STATUS,
    "outputs": RequestKind.OUTPUTS,
    "set-policy": RequestKind.SET_POLICY,
    "exports": RequestKind.EXPORT,
}


def _build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-c",
        "--config",
        default=os.environ.get("STACKWRIGHT_CONFIG", DEFAULT_CONFIG),
        help="Path to the project config (inside the repo when --repo is used)",
    )
    common.add_argument("-p", "--profile", default=None, help="AWS profile to use")
    common.add_argument("--region", default=None, help="AWS region (overrides the config)")
    common.add_argument("--debug", action="store_true", help="Enable debug logging")
    common.add_argument("--repo", default="", help="Git repository to read config and templates from")
    common.add_argument("--repo-user", default="", help="Username for HTTPS repositories")
    common.add_argument(
        "--repo-key",
        default="~/.ssh/id_rsa",
        help="Private key for SSH repositories (default: ~/.ssh/id_rsa)",
    )

    parser = argparse.ArgumentParser(
        prog="stackwright",
        description="Render and deploy CloudFormation stacks from a project config.",
    )
    sub = parser.add_subparsers(dest="command")

    def stacks_command(name: str, help_text: str, *, sources: bool, all_flag: bool) -> None:
        p = sub.add_parser(name, help=help_text, parents=[common])
        p.add_argument("stacks", nargs="*", help="Stack names from the config")
        if sources:
            p.add_argument(
                "-t",
                "--template",
                dest="sources",
                action="append",
                default=[],
                metavar="STACK::LOCATION",
                help="Template source override; may be repeated",
            )
        if all_flag:
            p.add_argument(
                "--all", dest="all_stacks", action="store_true", help="Target every stack"
            )

    stacks_command("generate", "Print rendered templates", sources=True, all_flag=False)
    stacks_command("deploy", "Create stacks", sources=True, all_flag=True)
    stacks_command("update", "Update stacks", sources=True, all_flag=False)
    stacks_command("check", "Validate rendered templates", sources=True, all_flag=False)
    stacks_command("terminate", "Delete stacks", sources=False, all_flag=True)
    stacks_command("status", "Print stack status (all stacks by default)", sources=False, all_flag=True)
    stacks_command("outputs", "Print stack outputs", sources=False, all_flag=False)
    stacks_command("set-policy", "Apply configured stack policies", sources=False, all_flag=False)

    sub.add_parser("exports", help="Print CloudFormation exports", parents=[common])

    invoke_p = sub.add_parser("invoke", help="Invoke a Lambda function", parents=[common])
    invoke_p.add_argument("function", help="Function name or ARN")
    invoke_p.add_argument("--event", default="", help="JSON event payload")

    init_p = sub.add_parser("init", help="Create a new project")
    init_p.add_argument("target", nargs="?", default=".", help="Target directory")

    return parser


def build_job(
    request: RequestKind,
    stacks: list[str],
    sources: list[str],
    all_stacks: bool = False,
) -> Job:
    """Turn command-line arguments into a Job.

    A ``-t`` value without a ``stack::`` prefix belongs to the first
    positional stack name.

    Raises:
        MalformedSourceError: bad descriptor, or no stack id for a bare location.
    """
    targets: dict[str, str] = {}
    for descriptor in sources:
        src = parse_source(descriptor)
        stack_id = src.stack_id or (stacks[0] if stacks else "")
        if not stack_id:
            raise MalformedSourceError(
                f"no stack given for source [{descriptor}], use stack::location"
            )
        targets[stack_id] = src.location

    for stack_id in stacks:
        targets.setdefault(stack_id, "")

    return Job(request=request, target_stacks=targets, all_stacks=all_stacks)


def _session(args: argparse.Namespace, registry: StackRegistry | None = None):
    region = args.region or (registry.region if registry else None) or None
    return AwsSettings.from_env(profile=args.profile, region=region).session()


def _load(
    args: argparse.Namespace, secret_provider: SecretProvider | None
) -> tuple[StackRegistry, Path]:
    """Read the config, cloning the repository first when --repo is set."""
    if args.repo:
        repo = Repo.fetch(
            args.repo,
            user=args.repo_user,
            key_path=args.repo_key,
            secret_provider=secret_provider,
        )
        config = parse_config(repo.read(args.config), origin=f"{args.repo}:{args.config}")
        return StackRegistry(config, files=repo.files), Path.cwd()

    config_path = Path(args.config)
    return StackRegistry(load_config(config_path)), config_path.resolve().parent


def _report(summary: InvocationSummary) -> int:
    if summary.fatal_error:
        print(f"ERROR: {summary.fatal_error}", file=sys.stderr)
    for outcome in summary.failed:
        print(f"ERROR: [{outcome.stack}] {outcome.phase}: {outcome.detail}", file=sys.stderr)
    return summary.exit_code


def _get_input(prompt: str, default: str) -> str:
    value = input(f"{prompt} [{default}]: ").strip()
    return value or default


def _init(args: argparse.Namespace) -> int:
    from stackwright.scaffold import init_project

    target = Path(args.target)
    project = _get_input("-> Enter your project name", "stackwright-project")
    region = _get_input("-> Enter AWS region", "eu-west-1")

    write_config = True
    config_path = target / "config.yml"
    if config_path.exists():
        answer = _get_input(f"-> [{config_path}] already exists, overwrite? (Y/N)", "N")
        write_config = answer.upper() == "Y"

    for path in init_project(target, project, region, write_config=write_config):
        print(f"  created {path}")
    return 0


def _invoke(args: argparse.Namespace) -> int:
    from stackwright.cloud.functions import invoke_function

    response = invoke_function(args.function, args.event, _session(args))
    print(response)
    return 0


def run(
    args: argparse.Namespace,
    *,
    backend=None,
    secret_provider: SecretProvider | None = None,
) -> int:
    """Execute a parsed command and return the process exit code."""
    if args.command == "init":
        return _init(args)
    if args.command == "invoke":
        return _invoke(args)

    request = _DISPATCHED[args.command]
    stacks = getattr(args, "stacks", [])
    if request is RequestKind.OUTPUTS and not stacks:
        print("Please specify stack(s) to check, see: stackwright outputs --help", file=sys.stderr)
        return 1
    if request is RequestKind.SET_POLICY and not stacks:
        print("Please specify stack name(s)", file=sys.stderr)
        return 1

    all_stacks = getattr(args, "all_stacks", False)
    # status with no names reports every stack
    if request is RequestKind.STATUS and not stacks:
        all_stacks = True

    job = build_job(request, stacks, getattr(args, "sources", []), all_stacks)
    registry, base_dir = _load(args, secret_provider)

    session = None
    if backend is None:
        session = _session(args, registry)
        backend = CloudFormationBackend(session)

    renderer = TemplateRenderer(registry, session=session, base_dir=base_dir)
    summary = Dispatcher(registry, backend, renderer).run(job)
    return _report(summary)


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )
    # Only show detailed logs for our own code
    logging.getLogger("stackwright").setLevel(logging.DEBUG if debug else logging.INFO)


def main(argv: list[str] | None = None) -> None:
    from dotenv import load_dotenv

    load_dotenv()

    parser = _build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    _configure_logging(getattr(args, "debug", False) or bool(os.environ.get("STACKWRIGHT_DEBUG")))

    try:
        code = run(args)
    except StackwrightError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        code = 1
    except KeyboardInterrupt:
        code = 130

    sys.exit(code)


if __name__ == "__main__":
    main()
