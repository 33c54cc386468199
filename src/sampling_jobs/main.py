# main.py
import argparse
import asyncio
import json
import sys
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table

from sampling_jobs.adapters.aiohttp_client_adapter import AioHttpClientAdapter
from sampling_jobs.adapters.retry_tenacity import TenacityRetryAdapter
from sampling_jobs.adapters.sampling_api_http import HttpSamplingApiAdapter
from sampling_jobs.adapters.sampling_api_inmemory import InMemorySamplingApi
from sampling_jobs.core.config import OrchestratorConfig, ResultPagerConfig
from sampling_jobs.core.exceptions import SamplingApiException, SamplingJobError, SubmissionError
from sampling_jobs.core.interfaces.sampling_api import SamplingApiPort
from sampling_jobs.core.logging_config import configure_logging
from sampling_jobs.core.managers.job_orchestrator import JobOrchestrator
from sampling_jobs.core.managers.observers import ProgressLogObserver
from sampling_jobs.core.managers.result_pager import ResultPager
from sampling_jobs.core.models.merged_sample import MergedSamplePage
from sampling_jobs.core.models.sampling_request import SamplingRequest
from sampling_jobs.core.settings import app_settings, logger

# main lives at the outermost layer (not in core)
# Instantiates all the concrete adapters
# Wires dependencies together
# Runs one job to completion

EXIT_OK = 0
EXIT_JOB_FAILED = 1
EXIT_SUBMISSION_FAILED = 2

DEMO_REQUEST: Dict[str, Any] = {
    "rounds": [
        {"round_number": 1, "method": "random", "parameters": {"sample_size": 10}, "output_name": "round_1"},
        {"round_number": 2, "method": "stratified", "parameters": {"strata_column": "region"}, "output_name": "round_2"},
        {"round_number": 3, "method": "systematic", "parameters": {"interval": 5}, "output_name": "round_3"},
    ],
    "export_residual": True,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sampling-jobs",
        description="Submit a multi-round sampling job and follow it to completion.",
    )
    parser.add_argument("--dataset", type=int, default=1, help="Dataset id")
    parser.add_argument("--version", type=int, default=1, help="Dataset version id")
    parser.add_argument("--request", metavar="FILE", help="JSON file with the round definitions")
    parser.add_argument("--page-size", type=int, default=None, help="Rows of the merged sample to print")
    parser.add_argument("--timeout", type=float, default=None, help="Seconds to wait for the job")
    parser.add_argument("--demo", action="store_true", help="Run against the in-process fake service")
    return parser


def load_request(path: Optional[str]) -> SamplingRequest:
    if path is None:
        return SamplingRequest.model_validate(DEMO_REQUEST)
    with open(path, "r", encoding="utf-8") as f:
        return SamplingRequest.model_validate(json.load(f))


def render_page(console: Console, page: MergedSamplePage) -> None:
    columns: List[str] = page.columns or (list(page.rows[0].keys()) if page.rows else [])
    pagination = page.pagination
    table = Table(
        title=f"Merged sample: page {pagination.page}/{pagination.total_pages or 1} ({pagination.total} rows)"
    )
    for column in columns:
        table.add_column(column)
    for row in page.rows:
        table.add_row(*(str(row.get(column, "")) for column in columns))
    console.print(table)


async def run(args: argparse.Namespace, api: SamplingApiPort, console: Console) -> int:
    request = load_request(args.request)
    retry_adapter = TenacityRetryAdapter(attempts=4, wait_initial=0.15, wait_max=1.2)
    orchestrator_config = OrchestratorConfig.from_app_settings(app_settings)
    pager = ResultPager(api, ResultPagerConfig.from_app_settings(app_settings), retry_adapter)

    async with JobOrchestrator(
        api,
        config=orchestrator_config,
        retry_port=retry_adapter,
        observers=[ProgressLogObserver()],
    ) as orchestrator:
        try:
            await orchestrator.start(args.dataset, args.version, request)
        except SubmissionError as exc:
            console.print(f"[red]Submission failed:[/red] {exc.message} ({exc.diagnostic})")
            return EXIT_SUBMISSION_FAILED

        try:
            job = await orchestrator.wait(args.timeout)
        except asyncio.TimeoutError:
            console.print(f"[red]Timed out[/red] after {args.timeout}s waiting for job {orchestrator.job_id}")
            return EXIT_JOB_FAILED
        except SamplingJobError as exc:
            console.print(f"[red]Job failed:[/red] {exc.message}")
            return EXIT_JOB_FAILED

    console.print(
        f"[green]Job {job.id} completed[/green]: {job.completed_rounds}/{job.total_rounds} rounds"
        f" in {job.execution_time_ms} ms"
    )
    try:
        page = await pager.get_page(job.id, 1, args.page_size)
    except SamplingJobError as exc:
        console.print(f"[yellow]Merged sample unavailable:[/yellow] {exc.message}")
        return EXIT_OK
    except SamplingApiException as exc:
        console.print(
            f"[yellow]Merged sample unavailable:[/yellow] {exc.response.title} ({exc.response.detail})"
        )
        return EXIT_OK
    except ValueError as exc:
        console.print(f"[yellow]Merged sample unavailable:[/yellow] {exc}")
        return EXIT_OK
    render_page(console, page)
    return EXIT_OK


async def amain(args: argparse.Namespace) -> int:
    console = Console()
    if args.demo:
        return await run(args, InMemorySamplingApi(), console)

    async with AioHttpClientAdapter(total_timeout=app_settings.SAMPLING_HTTP_TIMEOUT) as http_client:
        api = HttpSamplingApiAdapter(
            http_client,
            app_settings.SAMPLING_API_URL,
            token=app_settings.SAMPLING_API_TOKEN,
            timeout=app_settings.SAMPLING_HTTP_TIMEOUT,
        )
        return await run(args, api, console)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    # Central logging configuration before anything logs
    configure_logging(app_settings.SAMPLING_LOG_LEVEL)
    app_settings.print_settings(logger)

    return asyncio.run(amain(args))


if __name__ == "__main__":
    sys.exit(main())
