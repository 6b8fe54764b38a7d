#!/usr/bin/env python3
"""
ClawFix CLI - Main Entry Point

Usage:
    clawfix scan diagnostic.json              # Pattern-match locally, no server needed
    clawfix diagnose diagnostic.json          # Full diagnosis (with AI) via server
    clawfix diagnose - --save fix.sh          # Read payload from stdin, save script
    clawfix fix FIX_ID --script | bash        # Fetch a stored fix script
    clawfix patterns                          # List known issue patterns
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
from rich.console import Console

from clawfix_cli import __version__
from clawfix_cli.client import ClawFixAPIClient, ClawFixAPIError
from clawfix_cli.config import CLIConfig
from clawfix_cli.renderer import DiagnosisRenderer


EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INVALID_PAYLOAD = 2


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI"""
    parser = argparse.ArgumentParser(
        prog="clawfix",
        description="ClawFix - diagnose OpenClaw installations and generate fix scripts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  clawfix scan diagnostic.json                 Local pattern matching only
  clawfix diagnose diagnostic.json             Pattern matching + AI analysis
  clawfix diagnose diagnostic.json --save fix.sh
  clawfix fix a1B2c3D4e5F6 --script            Print a stored fix script
  clawfix patterns                             Known issue catalog

Collect a payload first:
  curl -sSL clawfix.com/fix | bash
        """
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", type=str, help="Path to config file")
    parser.add_argument("--server-url", type=str, help="ClawFix API base URL (default from config)")
    parser.add_argument("--json", action="store_true", help="Print raw JSON instead of tables")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    scan_parser = subparsers.add_parser("scan", help="Detect known issues locally (no AI, no server)")
    scan_parser.add_argument("payload", help="Diagnostic JSON file ('-' for stdin)")
    scan_parser.add_argument("--save", type=str, help="Write the fix script to this path")
    scan_parser.add_argument("--script", action="store_true", help="Also print the fix script")

    diagnose_parser = subparsers.add_parser("diagnose", help="Send a payload to the ClawFix server")
    diagnose_parser.add_argument("payload", help="Diagnostic JSON file ('-' for stdin)")
    diagnose_parser.add_argument("--save", type=str, help="Write the fix script to this path")
    diagnose_parser.add_argument("--script", action="store_true", help="Also print the fix script")

    fix_parser = subparsers.add_parser("fix", help="Fetch a previously generated fix")
    fix_parser.add_argument("fix_id", help="Fix ID returned by diagnose")
    fix_parser.add_argument("--script", action="store_true", help="Print only the bash script")

    patterns_parser = subparsers.add_parser("patterns", help="List known issue patterns")
    patterns_parser.add_argument("--remote", action="store_true", help="Ask the server instead of the local catalog")

    return parser


def load_payload(source: str) -> Any:
    """Read a diagnostic payload from a file or stdin"""
    if source == "-":
        return json.load(sys.stdin)
    with open(Path(source).expanduser(), encoding="utf-8") as f:
        return json.load(f)


def save_script(path: str, script: str) -> Path:
    target = Path(path).expanduser()
    target.write_text(script + "\n", encoding="utf-8")
    target.chmod(0o755)
    return target


async def scan_locally(payload: Any) -> Dict[str, Any]:
    """Run the diagnosis pipeline in-process with AI disabled"""
    from clawfix.services.diagnosis import DiagnosisService, ResultStore
    from clawfix.services.diagnosis.augmentor import NullAugmentor

    service = DiagnosisService(ResultStore(capacity=1), NullAugmentor(reason="local scan"))
    result = await service.diagnose(payload, source="cli-local")
    return result.to_dict()


def local_patterns() -> List[Dict[str, str]]:
    from clawfix.services.diagnosis.catalog import list_issues
    return list_issues()


def _emit_result(result: Dict[str, Any], args, renderer: DiagnosisRenderer, console: Console) -> None:
    if args.json:
        console.print_json(data=result)
    else:
        renderer.render_result(result, show_script=getattr(args, "script", False))

    if getattr(args, "save", None):
        target = save_script(args.save, result.get("fixScript", ""))
        console.print(f"[green]✓ Fix script saved to {target}[/green]")
        console.print(f"[dim]Review it, then run: bash {target}[/dim]")


async def run_command(args, config: CLIConfig, console: Console) -> int:
    renderer = DiagnosisRenderer(console)

    if args.command == "scan":
        from clawfix.core.exceptions import InvalidDiagnosticPayloadError
        try:
            result = await scan_locally(load_payload(args.payload))
        except InvalidDiagnosticPayloadError as e:
            renderer.render_error(e.message, e.hint)
            return EXIT_INVALID_PAYLOAD
        _emit_result(result, args, renderer, console)
        return EXIT_OK

    if args.command == "patterns" and not args.remote:
        patterns = local_patterns()
        if args.json:
            console.print_json(data=patterns)
        else:
            renderer.render_patterns(patterns)
        return EXIT_OK

    async with ClawFixAPIClient(config.api_base_url, timeout=config.timeout) as api:
        if args.command == "diagnose":
            try:
                result = await api.diagnose(load_payload(args.payload))
            except ClawFixAPIError as e:
                renderer.render_error(e.message, e.hint)
                return EXIT_INVALID_PAYLOAD if e.status_code == 400 else EXIT_ERROR
            _emit_result(result, args, renderer, console)
            return EXIT_OK

        if args.command == "fix":
            if args.script:
                sys.stdout.write(await api.get_fix_script(args.fix_id) + "\n")
                return EXIT_OK
            _emit_result(await api.get_fix(args.fix_id), args, renderer, console)
            return EXIT_OK

        if args.command == "patterns":
            patterns = await api.patterns()
            if args.json:
                console.print_json(data=patterns)
            else:
                renderer.render_patterns(patterns)
            return EXIT_OK

    return EXIT_ERROR


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return EXIT_ERROR

    config = CLIConfig.load_default(args.config)
    if args.server_url:
        config.api_base_url = args.server_url.rstrip("/")
    if args.verbose:
        config.verbose = True
    if config.output_format == "json":
        args.json = True

    # Keep service logs out of the rendered output
    logging.getLogger("clawfix").setLevel(logging.DEBUG if config.verbose else logging.WARNING)

    console = Console()

    try:
        return asyncio.run(run_command(args, config, console))
    except KeyboardInterrupt:
        console.print("\n\nInterrupted")
        return EXIT_ERROR
    except FileNotFoundError as e:
        DiagnosisRenderer(console).render_error(f"File not found: {e.filename}")
        return EXIT_ERROR
    except json.JSONDecodeError as e:
        DiagnosisRenderer(console).render_error(
            f"Payload is not valid JSON: {e}",
            "Run the diagnostic script: curl -sSL clawfix.com/fix | bash",
        )
        return EXIT_INVALID_PAYLOAD
    except ClawFixAPIError as e:
        DiagnosisRenderer(console).render_error(e.message, e.hint)
        return EXIT_ERROR
    except httpx.HTTPError as e:
        DiagnosisRenderer(console).render_error(
            f"Cannot reach ClawFix server at {config.api_base_url}: {e}",
            "Use 'clawfix scan' for offline pattern matching",
        )
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
