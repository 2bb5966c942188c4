"""Command-line interface for release candidate verification."""

import argparse
import logging
import sys
from pathlib import Path

from relverify.api.release import build_context, release_steps
from relverify.api.report import render, render_json, render_vote
from relverify.api.verify import run
from relverify.core.config import VerifyConfig
from relverify.core.models import Policy, Report

logging.basicConfig(
    level=logging.INFO,
    format='%(message)s',
    stream=sys.stdout
)
logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='relverify',
        description='Verify an Apache release candidate: download, check signatures and '
                    'checksums, compare with git, build and smoke test'
    )

    parser.add_argument(
        '-v', '--verbose', '-d', '--debug',
        dest='verbose',
        action='store_true',
        help='Enable debug logging'
    )

    subparsers = parser.add_subparsers(
        dest='command',
        help='Available commands',
        required=True
    )

    # Verify command
    verify_parser = subparsers.add_parser('verify', help='Run all verification steps')
    verify_parser.add_argument('-u', '--url', required=True, help='URL the release candidate artifacts are downloaded from')
    verify_parser.add_argument('-g', '--gpg-key', required=True, help='GPG public key reference (key id or KEYS file) used for signing')
    verify_parser.add_argument('-b', '--base-tag', required=True, help="Base git tag to compare to, without the 'release-' prefix (e.g. 1.15.2)")
    verify_parser.add_argument('-m', '--maven', type=str, default=None, help='Maven executable (default from rules, mvn)')
    verify_parser.add_argument('-w', '--working-dir', type=str, default='.', help='Existing working directory for downloads and builds (default: .)')
    verify_parser.add_argument('--rules', type=str, default=None, help='Path to verification settings YAML/JSON file')
    verify_parser.add_argument('--policy', choices=[p.value for p in Policy], default=None, help='Failure policy (default from rules, fail-fast)')
    verify_parser.add_argument('-j', '--jobs', type=int, default=None, help='Run up to N independent steps concurrently')
    verify_parser.add_argument('--json', type=str, default=None, help='Also write the machine-readable report to this file')
    verify_parser.add_argument('--vote', action='store_true', help='Print a release vote reply after the report')

    # Steps command
    steps_parser = subparsers.add_parser('steps', help='List the verification steps and their prerequisites')
    steps_parser.add_argument('--rules', type=str, default=None, help='Path to verification settings YAML/JSON file')

    # Render command
    render_parser = subparsers.add_parser('render', help='Render a saved JSON report')
    render_parser.add_argument('report_file', help='Path to a report written with --json')
    render_parser.add_argument('--vote', action='store_true', help='Render as release vote reply')

    return parser.parse_args(argv)


def load_config(path) -> VerifyConfig:
    if path:
        logger.info(f"Loading rules from {path}")
        return VerifyConfig.from_file(path)
    return VerifyConfig.default()


def cmd_verify(args) -> int:
    """Handle 'verify' command - full release candidate verification."""
    working_dir = Path(args.working_dir)
    if not working_dir.is_dir():
        logger.error(f"Passed working directory {working_dir} doesn't exist.")
        return 2

    config = load_config(args.rules)
    if args.maven:
        config.maven.executable = args.maven

    try:
        context = build_context(args.url, args.gpg_key, args.base_tag, working_dir.resolve(), config)
    except ValueError as e:
        logger.error(f"Invalid release candidate URL: {e}")
        return 2
    logger.info(f"Verifying {config.repository.name} {context.inputs['INPUT_GIT_TAG']} in {working_dir}")

    report = run(release_steps(config), context, policy=args.policy, max_workers=args.jobs)

    print()
    print(render(report), end='')
    if args.vote:
        print()
        print(render_vote(report), end='')

    if args.json:
        output_path = Path(args.json)
        output_path.write_text(render_json(report), encoding='utf-8')
        logger.info(f"Wrote report: {output_path}")

    return report.exit_code


def cmd_steps(args) -> int:
    """List steps in registration order."""
    for step in release_steps(load_config(args.rules)):
        requires = f" <- {', '.join(step.requires)}" if step.requires else ""
        print(f"  {step.id:<18}{step.description}{requires}")
    return 0


def cmd_render(args) -> int:
    """Re-render a saved report."""
    with open(args.report_file, 'r') as f:
        report = Report.model_validate_json(f.read())

    print(render_vote(report) if args.vote else render(report), end='')
    return report.exit_code


def main(argv=None):
    args = parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # Route to command handlers
    if args.command == 'verify':
        status = cmd_verify(args)
    elif args.command == 'steps':
        status = cmd_steps(args)
    elif args.command == 'render':
        status = cmd_render(args)
    else:
        logger.error(f"Unknown command: {args.command}")
        status = 1

    sys.exit(status)


if __name__ == '__main__':
    main()
