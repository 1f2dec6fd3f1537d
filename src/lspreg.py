"""lspreg - language-server registry resolver and installer.

Entry point and composition root: builds the catalog, state store,
resolver, process runner and orchestrator, wires them together and runs
the requested command.

    Returns:
        int: Exit code
"""
import asyncio
import json
import logging
import sys
from dataclasses import dataclass
from typing import List, Optional

from args import parse_args
from cli_config import feed_cache_path, install_root, load_config, state_file_path
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from constants import Constants, ExitCodes
from installer.commands import build_command
from installer.errors import InstallError, ProcessExitError
from installer.orchestrator import InstallationOrchestrator
from installer.persistence import StateFile
from installer.resolver import InstallationMethodResolver
from installer.runner import AsyncSubprocessRunner
from installer.state import InstalledPackageStateStore
from locator.models import GitBuild, InstallationMethod, PrebuiltBinary
from registry.catalog import RegistryCatalogStore
from registry.feed import FeedError, is_remote, load_feed
from registry.models import RegistryItem
from registry.versions import is_update_available

logger = logging.getLogger(__name__)


@dataclass
class Application:
    """Explicitly constructed collaborators shared by the commands."""
    catalog: RegistryCatalogStore
    state: InstalledPackageStateStore
    state_file: StateFile
    resolver: InstallationMethodResolver
    orchestrator: InstallationOrchestrator


def build_application(runner=None) -> Application:
    """Wire the stores, resolver and orchestrator together."""
    catalog = RegistryCatalogStore()
    state = InstalledPackageStateStore()
    state_file = StateFile(state_file_path())
    state.load(state_file.load())
    state_file.attach(state)

    resolver = InstallationMethodResolver()
    orchestrator = InstallationOrchestrator(
        catalog=catalog,
        state=state,
        resolver=resolver,
        runner=runner or AsyncSubprocessRunner(),
        install_root=install_root(),
        on_output=_print_output_line,
    )
    return Application(catalog, state, state_file, resolver, orchestrator)


def _print_output_line(name: str, line: str) -> None:
    if logging.getLogger().isEnabledFor(logging.INFO):
        sys.stderr.write(f"[{name}] {line}\n")


def refresh_catalog(app: Application) -> int:
    """Load the feed into the catalog. Returns an exit code."""
    location = Constants.REGISTRY_FEED_URL
    try:
        app.catalog.refresh(lambda: load_feed(location, cache_path=feed_cache_path()))
    except FeedError as exc:
        logger.error("Could not load registry feed: %s", exc)
        if is_remote(location):
            return ExitCodes.CONNECTION_ERROR.value
        return ExitCodes.FILE_ERROR.value
    return ExitCodes.SUCCESS.value


def describe_method(method: InstallationMethod) -> dict:
    """JSON-friendly description of a resolved installation method."""
    info = {"method": method.kind.value}
    source = getattr(method, "source", None)
    if source is None:
        return info
    ref = source.git_reference
    info.update({
        "type": source.type.value,
        "package": source.pkg_name,
        "version": source.version,
        "repository_url": source.repository_url,
        "git_reference": {"kind": ref.kind.value, "value": ref.value} if ref else None,
        "options": dict(source.options),
    })
    if isinstance(method, GitBuild):
        info["repository_url"] = method.repository_url
    if isinstance(method, PrebuiltBinary):
        info["download_url"] = method.download_url
    return info


def _lookup(app: Application, names: List[str]) -> Optional[List[RegistryItem]]:
    items = []
    missing = []
    for name in names:
        item = app.catalog.get(name)
        if item is None:
            missing.append(name)
        else:
            items.append(item)
    if missing:
        logger.error("Not in the registry: %s", ", ".join(missing))
        return None
    return items


def cmd_list(app: Application, args) -> int:
    installed = app.state.all()
    rows = [
        item for item in app.catalog.items
        if not args.INSTALLED_ONLY or item.name in installed
    ]
    if args.JSON:
        payload = []
        for item in rows:
            entry = item.to_dict()
            record = installed.get(item.name)
            entry["installed"] = record.to_dict() if record else None
            payload.append(entry)
        print(json.dumps(payload, indent=2))
        return ExitCodes.SUCCESS.value

    for item in rows:
        record = installed.get(item.name)
        marker = " "
        if record is not None:
            marker = "*" if record.is_enabled else "-"
        print(f"{marker} {item.name:<32} {item.ecosystem or '?':<7} {item.description}")
    return ExitCodes.SUCCESS.value


def cmd_show(app: Application, args) -> int:
    items = _lookup(app, [args.NAME])
    if items is None:
        return ExitCodes.USAGE_ERROR.value
    item = items[0]
    method = app.resolver.resolve(item)
    info = describe_method(method)
    info["name"] = item.name
    info["source"] = item.source
    if not method.is_unknown:
        try:
            info["command"] = build_command(method, install_root()).argv
        except ValueError as exc:
            logger.debug("No install command for %s: %s", item.name, exc)

    if args.JSON:
        print(json.dumps(info, indent=2))
    else:
        for key, value in info.items():
            if value in (None, {}, []):
                continue
            if isinstance(value, (dict, list)):
                value = json.dumps(value)
            print(f"{key:>15}: {value}")
    return ExitCodes.SUCCESS.value


def cmd_install(app: Application, args) -> int:
    items = _lookup(app, args.NAMES)
    if items is None:
        return ExitCodes.USAGE_ERROR.value

    outcomes = asyncio.run(app.orchestrator.install_many(items))
    exit_code = ExitCodes.SUCCESS.value
    for outcome in outcomes:
        if outcome.succeeded:
            print(f"installed {outcome.package_name} {outcome.record.installed_version}")
            continue
        exit_code = ExitCodes.INSTALL_FAILED.value
        sys.stderr.write(f"failed {outcome.error}\n")
        if isinstance(outcome.error, ProcessExitError) and outcome.error.output_tail:
            sys.stderr.write(outcome.error.output_tail + "\n")
    return exit_code


def cmd_toggle(app: Application, args, enabled: bool) -> int:
    try:
        app.orchestrator.set_enabled(args.NAME, enabled)
    except InstallError as exc:
        logger.error("%s", exc)
        return ExitCodes.USAGE_ERROR.value
    print(f"{'enabled' if enabled else 'disabled'} {args.NAME}")
    return ExitCodes.SUCCESS.value


def cmd_uninstall(app: Application, args) -> int:
    try:
        app.orchestrator.uninstall(args.NAME)
    except InstallError as exc:
        logger.error("%s", exc)
        return ExitCodes.USAGE_ERROR.value
    print(f"uninstalled {args.NAME}")
    return ExitCodes.SUCCESS.value


def available_version(app: Application, name: str) -> Optional[str]:
    item = app.catalog.get(name)
    if item is None:
        return None
    method = app.resolver.resolve(item)
    source = getattr(method, "source", None)
    return source.version if source is not None else None


def cmd_status(app: Application, args) -> int:
    rows = []
    for name, record in sorted(app.state.all().items()):
        available = available_version(app, name)
        rows.append({
            **record.to_dict(),
            "available_version": available,
            "update_available": is_update_available(record.installed_version, available),
        })

    if args.JSON:
        print(json.dumps(rows, indent=2))
        return ExitCodes.SUCCESS.value
    if not rows:
        print("No language servers installed.")
    for row in rows:
        flag = "enabled" if row["is_enabled"] else "disabled"
        update = f" (update: {row['available_version']})" if row["update_available"] else ""
        print(f"{row['package_name']:<32} {row['installed_version']:<16} {flag}{update}")
    return ExitCodes.SUCCESS.value


_NEEDS_CATALOG = ("list", "show", "install", "status")


def run(args) -> int:
    """Execute a parsed command; returns the process exit code."""
    app = build_application()
    if args.action in _NEEDS_CATALOG:
        code = refresh_catalog(app)
        # status still reports local records when the feed is unavailable
        if code != ExitCodes.SUCCESS.value and args.action != "status":
            return code

    if is_debug_enabled(logger):
        logger.debug(
            "Dispatching command",
            extra=extra_context(event="dispatch", component="cli", action=args.action)
        )

    if args.action == "list":
        return cmd_list(app, args)
    if args.action == "show":
        return cmd_show(app, args)
    if args.action == "install":
        return cmd_install(app, args)
    if args.action == "uninstall":
        return cmd_uninstall(app, args)
    if args.action == "enable":
        return cmd_toggle(app, args, True)
    if args.action == "disable":
        return cmd_toggle(app, args, False)
    if args.action == "status":
        return cmd_status(app, args)
    logger.error("Unknown command: %s", args.action)
    return ExitCodes.USAGE_ERROR.value


def main(argv: Optional[List[str]] = None) -> None:
    """Main function of the program."""
    args = parse_args(argv)
    configure_logging(args.LOG_LEVEL, args.LOG_FILE, quiet=args.QUIET)
    load_config(args)
    logging.debug("Arguments parsed.")
    sys.exit(run(args))


if __name__ == "__main__":
    main()
