"""
Command line entry points: one-off ranking, analysis and a polling loop.
"""
from __future__ import annotations

import json
import logging

import click

from trends.llm_client import LLMError
from trends.models import RankingQuery, SortKey, TimeWindow, TrendSource
from trends.ranking import tier_counts
from trends.serialization import group_to_dict, scored_to_dict

SOURCE_CHOICES = [s.value for s in TrendSource]


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@cli.command()
@click.option("--source", "sources", multiple=True, type=click.Choice(SOURCE_CHOICES))
@click.option("--window", type=click.Choice([w.value for w in TimeWindow]), default=TimeWindow.DAY.value)
@click.option("--sort", "sort_key", type=click.Choice([k.value for k in SortKey]), default=SortKey.COMBINED.value)
@click.option("--limit", type=int, default=20)
@click.option("--cache/--no-cache", "use_cache", default=False)
@click.option("--show-rejected", is_flag=True)
@click.option("--table", is_flag=True, help="Print a human-readable table instead of JSON lines.")
def rank(sources, window, sort_key, limit, use_cache, show_rejected, table):
    from trends import get_pipeline

    query = RankingQuery(
        sources=[TrendSource(s) for s in sources] or list(TrendSource),
        window=TimeWindow(window),
        hide_rejected=not show_rejected,
        sort_by=SortKey(sort_key),
        limit=limit,
        use_cache=use_cache,
    )
    result = get_pipeline().run(query)
    if not table:
        for scored in result.trends:
            click.echo(json.dumps(scored_to_dict(scored), ensure_ascii=False))
        return

    for position, scored in enumerate(result.trends, start=1):
        tier = scored.value_tier.value if scored.value_tier else "-"
        click.echo(
            f"{position:>3}. [{scored.combined_score:>3}] {tier:<5} "
            f"{scored.trend.source.value:<11} {scored.trend.title[:90]}"
        )
    counts = tier_counts(result.trends)
    status = " (degraded, cached)" if result.degraded else ""
    click.echo(
        f"\n{len(result.trends)}/{result.total} trends{status} | "
        + " ".join(f"{name}={count}" for name, count in counts.items())
    )


@cli.command()
@click.option("--id", "trend_ids", multiple=True, help="Analyse only these trend ids.")
@click.option("--cross-platform", is_flag=True, help="Also detect cross-platform topics.")
def analyze(trend_ids, cross_platform):
    from trends import get_pipeline

    try:
        report = get_pipeline().analyze(list(trend_ids) or None, detect_cross_platform=cross_platform)
    except LLMError as exc:
        raise click.ClickException(str(exc))
    click.echo(
        f"Analysed {report.analyzed}/{report.requested} trends, "
        f"{report.failed_batches} failed batches, {len(report.groups)} cross-platform groups"
    )
    for group in report.groups:
        click.echo(json.dumps(group_to_dict(group), ensure_ascii=False))


@cli.command()
@click.option("--minutes", type=int, default=30, show_default=True)
def poll(minutes):
    from trends import get_pipeline
    from trends.scheduler import run_scheduler

    run_scheduler(get_pipeline(), minutes)


if __name__ == "__main__":  # pragma: no cover
    cli()
