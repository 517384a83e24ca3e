"""Command-line interface for the Anesthesia Research Hub."""

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path

import click
from pydantic import ValidationError

from anesthesia_hub.config import get_settings
from anesthesia_hub.data_sources.base_client import DataSourceError
from anesthesia_hub.models.model_paper import DateRange, Paper
from anesthesia_hub.services.llm import LLMConfigurationError
from anesthesia_hub.services.research import ResearchService


def _run(coro_factory):
    """Build a service, run one coroutine against it, and always close it."""

    async def runner():
        service = ResearchService.from_settings()
        try:
            return await coro_factory(service)
        finally:
            await service.close()

    try:
        return asyncio.run(runner())
    except LLMConfigurationError as e:
        raise click.ClickException(f"Configuration error: {e}")
    except DataSourceError as e:
        raise click.ClickException(f"PubMed unavailable: {e}")
    except ValueError as e:
        raise click.BadParameter(str(e))


def _emit(text: str, output: str | None) -> None:
    if output:
        Path(output).write_text(text)
        click.echo(f"Results saved to: {output}")
    else:
        click.echo(text)


def _papers_json(papers: list[Paper]) -> str:
    return json.dumps([p.model_dump(mode="json") for p in papers], indent=2)


@click.group()
@click.version_option(package_name="anesthesia-research-hub")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    """Anesthesia Research Hub: recent anesthesiology papers with AI commentary."""
    level = logging.DEBUG if verbose else get_settings().log_level
    logging.basicConfig(
        level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )


@main.command()
@click.option("-j", "--journal", help="Journal label or abbreviation (default: all)")
@click.option("--start", type=click.DateTime(formats=["%Y-%m-%d"]), help="Range start")
@click.option("--end", type=click.DateTime(formats=["%Y-%m-%d"]), help="Range end")
@click.option("-o", "--output", type=click.Path(), help="Output file path (JSON)")
def research(
    journal: str | None,
    start: datetime | None,
    end: datetime | None,
    output: str | None,
):
    """Fetch and enrich recent papers."""
    if (start is None) != (end is None):
        raise click.UsageError("--start and --end must be given together")
    date_range = None
    if start and end:
        try:
            date_range = DateRange(start=start.date(), end=end.date())
        except ValidationError as e:
            raise click.BadParameter(e.errors()[0]["msg"], param_hint="--start/--end")
    papers = _run(lambda s: s.get_latest_research(journal, date_range))
    _emit(_papers_json(papers), output)


@main.command()
@click.option("-o", "--output", type=click.Path(), help="Output file path (JSON)")
def guidelines(output: str | None):
    """Fetch guideline and consensus papers from the past year."""
    papers = _run(lambda s: s.get_guidelines())
    _emit(_papers_json(papers), output)


@main.command()
@click.option("-o", "--output", type=click.Path(), help="Output file path (Markdown)")
def report(output: str | None):
    """Write the weekly research briefing."""
    _emit(_run(lambda s: s.get_weekly_report()), output)


if __name__ == "__main__":
    main()
