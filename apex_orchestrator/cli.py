"""CLI entry point for the APEX orchestrator."""

import argparse
import asyncio
import json
import logging
from typing import List, Optional

from .adapters.factory import build_capabilities
from .config.settings import OrchestratorSettings
from .models.request import OrchestrationRequest, RequestOptions
from .orchestration.errors import InvalidRequest, UnresolvableRequest
from .orchestration.orchestrator import Orchestrator


def build_orchestrator(settings: Optional[OrchestratorSettings] = None) -> Orchestrator:
    settings = settings or OrchestratorSettings.from_env()
    return Orchestrator.from_settings(settings, build_capabilities(settings))


async def run_orchestration(
    prompt: str,
    tools: List[str],
    context: Optional[dict] = None,
    timeout_ms: Optional[int] = None,
    retries: Optional[int] = None,
    save: bool = False
) -> int:
    """Run one request and print the result as JSON."""
    orchestrator = build_orchestrator()

    options = {"save_result": save}
    if timeout_ms is not None:
        options["timeout_ms"] = timeout_ms
    if retries is not None:
        options["retries"] = retries

    request = OrchestrationRequest(
        prompt=prompt,
        context=context or {},
        requested_tools=tools or "all",
        options=RequestOptions(**options)
    )

    await orchestrator.start(monitor=False)
    try:
        result = await orchestrator.submit(request)
    except (InvalidRequest, UnresolvableRequest) as e:
        print(f"Error: {str(e)}")
        return 2
    finally:
        await orchestrator.shutdown()

    print(json.dumps(result.to_response(), indent=2, default=str))
    return 0 if result.success else 1


async def show_status() -> int:
    """Probe every configured capability once and print its health."""
    orchestrator = build_orchestrator()
    await orchestrator.start(monitor=False)
    try:
        results = await orchestrator.health_monitor.probe_all()
        status = orchestrator.status()
    finally:
        await orchestrator.shutdown()

    print("Capabilities:")
    print("-" * 50)
    for name, health in status["capabilities"].items():
        mark = "✓" if results.get(name) else "✗"
        print(f"{mark} {name} ({health['kind']}) state={health['state']}")
        if health.get("last_error"):
            print(f"   {health['last_error']}")
    return 0


def serve(host: str, port: int) -> None:
    try:
        import uvicorn
    except ImportError:
        raise ImportError(
            "uvicorn is required to serve the HTTP API. "
            "Please install with: pip install apex-orchestrator[http]"
        )

    from .http.api import create_app

    uvicorn.run(create_app(), host=host, port=port)


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI function."""
    parser = argparse.ArgumentParser(description="APEX capability orchestrator")
    parser.add_argument('--log-level', default='INFO', help='Logging level')
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    orchestrate_parser = subparsers.add_parser('orchestrate', help='Run a natural-language task')
    orchestrate_parser.add_argument('prompt', help='Task description')
    orchestrate_parser.add_argument('--tool', action='append', dest='tools', default=[],
                                    help='Capability to use (repeatable, default: all)')
    orchestrate_parser.add_argument('--context', type=json.loads, help='JSON context object')
    orchestrate_parser.add_argument('--timeout-ms', type=int, help='Per-step timeout in milliseconds')
    orchestrate_parser.add_argument('--retries', type=int, help='Retries per step')
    orchestrate_parser.add_argument('--save', action='store_true', help='Persist the result to storage')

    subparsers.add_parser('status', help='Probe capabilities and show their health')

    serve_parser = subparsers.add_parser('serve', help='Serve the HTTP API')
    serve_parser.add_argument('--host', default='0.0.0.0')
    serve_parser.add_argument('--port', type=int, help='Port (default: PORT or 3000)')

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    if args.command == 'orchestrate':
        return asyncio.run(run_orchestration(
            args.prompt,
            args.tools,
            args.context,
            args.timeout_ms,
            args.retries,
            args.save
        ))
    elif args.command == 'status':
        return asyncio.run(show_status())
    elif args.command == 'serve':
        serve(args.host, args.port or OrchestratorSettings.from_env().port)
        return 0

    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
