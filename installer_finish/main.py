import argparse
import json
import sys
from pathlib import Path

from installer_finish.config import settings
from installer_finish.domain.models import InstallContext, InstallMode
from installer_finish.exceptions import ConfigurationError
from installer_finish.logging import FALLBACK_LOG_DIR, LoggerFactory, setup_logging
from installer_finish.steps import STEP_CLASSES, UmountFinish, build_step, steps_for_mode


log = LoggerFactory.for_system()


def parse_param(text):
    """Parse KEY=VALUE; VALUE is read as JSON when it parses, else kept as string."""
    key, sep, raw = text.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {text!r}")
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        value = raw
    return key, value


def build_parser():
    parser = argparse.ArgumentParser(
        prog="installer-finish",
        description="Run installer finish steps against the target system",
    )
    parser.add_argument("--destdir", help="Target root (default from settings, usually /)")
    parser.add_argument("--mode", help="Installation mode: install, update, autoinst, live_install")
    parser.add_argument("--stage", help="Installer stage: initial, continue, normal")
    parser.add_argument("--log-dir", help="Directory for log files")
    parser.add_argument("-d", "--debug", action="store_true", help="Enable verbose debug output")
    parser.add_argument("--trace", action="store_true", help="Log every parsed mount entry")
    subparsers = parser.add_subparsers(dest="command", required=True)

    call = subparsers.add_parser("call", help="Call Info or Write of one step")
    call.add_argument("step", help="Step name, e.g. umount or umount_finish")
    call.add_argument("function", help="Info or Write")
    call.add_argument(
        "--param",
        dest="params",
        action="append",
        type=parse_param,
        default=[],
        metavar="KEY=VALUE",
        help="Parameter passed to the step (repeatable)",
    )

    list_parser = subparsers.add_parser("list", help="List steps and their Info")
    list_parser.add_argument(
        "--for-mode",
        dest="for_mode",
        help="Only steps that apply to this installation mode",
    )

    subparsers.add_parser(
        "umount-standalone",
        help="Unmount everything below the target (/mnt when destdir is /)",
    )
    return parser


def configure_logging(args, values):
    log_dir = args.log_dir or values.get("log_dir")
    try:
        setup_logging(
            debug=args.debug,
            trace=args.trace,
            log_dir=Path(log_dir) if log_dir else None,
        )
    except OSError:
        setup_logging(debug=args.debug, trace=args.trace, log_dir=FALLBACK_LOG_DIR)


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    values = dict(settings.settings_store.values)
    for key in ("destdir", "mode", "stage"):
        if getattr(args, key):
            values[key] = getattr(args, key)

    configure_logging(args, values)

    try:
        context = InstallContext.from_settings(values)
        if args.command == "call":
            return _call(args, context, values)
        if args.command == "list":
            return _list(args, context, values)
        return _umount_standalone(context)
    except ConfigurationError as error:
        log.error(str(error))
        print(f"error: {error}", file=sys.stderr)
        return 2


def _call(args, context, values):
    step = build_step(args.step, context, values)
    result = step.call(args.function, dict(args.params))
    print(json.dumps(result))
    return 1 if result is False else 0


def _list(args, context, values):
    if args.for_mode:
        steps = steps_for_mode(InstallMode.parse(args.for_mode), context, values)
    else:
        steps = [build_step(kind, context, values) for kind in STEP_CLASSES]
    for step in steps:
        print(json.dumps({"name": step.name, **step.info().to_dict()}))
    return 0


def _umount_standalone(context):
    print("Running umount_finish standalone")
    step = UmountFinish.standalone(context)
    step.call("Write")
    print("umount_finish done")
    return 0


if __name__ == "__main__":
    sys.exit(main())
