"""Command-line entry point: analyze invoice PDFs and print the records as JSON."""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from invoice_analyzer.config import Settings
from invoice_analyzer.core.batch import BatchResult, analyze_many, find_pdf_files
from invoice_analyzer.core.exceptions import ConfigError, InvoiceAnalyzerError
from invoice_analyzer.core.models import AnalysisConfig, PromptOptions
from invoice_analyzer.core.prompt_builder import build_extraction_prompt
from invoice_analyzer.core.schema import resolve_config
from invoice_analyzer.io.config_store import load_client_config, load_config, resolve_api_key
from invoice_analyzer.logging_config import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="invoice-analyzer",
        description="Extract structured invoice data from PDFs with Gemini.",
    )
    parser.add_argument("paths", nargs="*", type=Path, help="PDF files or folders of PDFs")
    parser.add_argument("--config", type=Path, help="Global configuration JSON (default: settings.config_path)")
    parser.add_argument("--client", help="Client id whose overrides to apply")
    parser.add_argument("--clients-dir", type=Path, help="Directory of client documents")
    parser.add_argument("--model", help="Gemini model name")
    parser.add_argument("--json-mode", action="store_true", help="Request structured JSON output")
    parser.add_argument("--summary", action="store_true", help="Ask for a short invoice summary")
    parser.add_argument("--field", dest="fields", action="append", metavar="KEY",
                        help="Only extract this field (repeatable)")
    parser.add_argument("--param", dest="params", action="append", default=[], metavar="NAME=VALUE",
                        help="Override a tag parameter for this run (repeatable)")
    parser.add_argument("--show-prompt", action="store_true", help="Print the prompt and exit without calling the model")
    parser.add_argument("--concurrency", type=int, help="Concurrent analyses")
    parser.add_argument("--retries", type=int, help="Extra attempts per failed document")
    parser.add_argument("--output", type=Path, help="Write results JSON to this file instead of stdout")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def parse_params(pairs: list[str]) -> Optional[dict[str, str]]:
    """Turn ``NAME=VALUE`` strings into a parameter override mapping."""
    if not pairs:
        return None

    params = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name.strip():
            raise ConfigError(f"expected NAME=VALUE, got '{pair}'", source="--param")
        params[name.strip()] = value
    return params


def collect_pdf_paths(paths: list[Path]) -> list[Path]:
    collected: list[Path] = []
    for path in paths:
        if path.is_dir():
            collected.extend(find_pdf_files(path))
        else:
            collected.append(path)
    return collected


def with_json_mode(config: AnalysisConfig) -> AnalysisConfig:
    extraction = config.extraction.model_copy(update={"use_json_mode": True})
    return config.model_copy(update={"extraction": extraction})


def render_summary(batch: BatchResult, console: Console) -> None:
    table = Table(title="Invoice analysis")
    table.add_column("File")
    table.add_column("Status")
    table.add_column("Attempts", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Error", overflow="fold")

    for result in batch.results:
        status = "[green]ok[/green]" if result.success else "[red]failed[/red]"
        table.add_row(
            result.file_name,
            status,
            str(result.attempts),
            str(result.token_usage.total_tokens),
            (result.error or "")[:120],
        )

    console.print(table)
    console.print(
        f"{batch.succeeded}/{batch.total} succeeded - "
        f"prompt {batch.token_usage.prompt_tokens}, output {batch.token_usage.output_tokens}, "
        f"total {batch.token_usage.total_tokens} tokens"
    )


def main(argv: Optional[list[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    console = Console(stderr=True)

    try:
        settings = Settings()
    except ValidationError as e:
        console.print(f"[red]Invalid settings:[/red] {e}")
        return 2

    try:
        setup_logging(settings.logs_directory, level=args.log_level)

        config = load_config(args.config or settings.config_path)
        if args.json_mode:
            config = with_json_mode(config)

        client = None
        if args.client:
            client = load_client_config(args.clients_dir or settings.clients_dir, args.client)

        prompt_options = PromptOptions(
            field_filter=args.fields,
            include_summary=True if args.summary else None,
            param_overrides=parse_params(args.params),
        )

        if args.show_prompt:
            print(build_extraction_prompt(resolve_config(config, client), prompt_options))
            return 0

        pdf_paths = collect_pdf_paths(args.paths)
        if not pdf_paths:
            console.print("[yellow]No PDF files to analyze[/yellow]")
            return 0

        api_key = resolve_api_key(client, settings.gemini_api_key)
        batch = asyncio.run(analyze_many(
            pdf_paths,
            config,
            api_key,
            client_config=client,
            prompt_options=prompt_options,
            model=args.model or resolve_config(config, client).model or settings.gemini_model,
            concurrency=args.concurrency or settings.concurrency,
            retry_attempts=settings.retry_attempts if args.retries is None else args.retries,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
            jitter_range=settings.retry_jitter_range,
            max_size_mb=settings.max_document_size_mb,
        ))
    except InvoiceAnalyzerError as e:
        logger.error(e.message)
        console.print(f"[red]Error:[/red] {e.message}")
        return 2

    payload = json.dumps([r.model_dump(mode="json") for r in batch.results], indent=2, ensure_ascii=False)
    if args.output:
        args.output.write_text(payload + "\n", encoding="utf-8")
    else:
        print(payload)

    render_summary(batch, console)
    return 0 if batch.failed == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
