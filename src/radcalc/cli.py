import asyncio
from datetime import datetime

import click

from .config import configure_logging, get_settings
from .context import open_context
from .db import open_storage
from .errors import RadCalcError
from .schemas import Citation
from .radiobiology import describe_alpha_beta


def _run_async(coro):
    """Run ``coro`` to completion, reporting library errors the click way."""
    try:
        return asyncio.run(coro)
    except RadCalcError as e:
        click.echo(click.style(f"✗ {e}", fg="red"), err=True)
        raise click.Abort()


def _run(settings, work, seed: bool = True):
    """Open the app context, await ``work(context)``, always close the context."""
    async def runner():
        context = await open_context(settings, seed=seed)
        try:
            if context.degraded:
                click.echo(click.style("⚠️  Storage unavailable: nothing will be saved", fg="yellow", bold=True), err=True)
            return await work(context)
        finally:
            await context.close()

    return _run_async(runner())


def _parse_citation(raw: str) -> Citation:
    """Parse ``title|year|url``; year and url are optional."""
    parts = [p.strip() for p in raw.split("|")]
    title = parts[0]
    year = parts[1] if len(parts) > 1 and parts[1] else None
    url = parts[2] if len(parts) > 2 and parts[2] else None
    if not title:
        raise click.BadParameter(f"citation needs a title: {raw!r}")
    if year is not None and not year.isdigit():
        raise click.BadParameter(f"citation year must be a number: {raw!r}")
    return Citation(title=title, year=int(year) if year else None, url=url)


def _format_reference(ref) -> str:
    line = f"{ref.id:>4}  {ref.tissue:<32} α/β = {ref.alpha_beta:g} Gy"
    if ref.description:
        line += f"  {click.style(ref.description, fg='white', dim=True)}"
    return line


def _format_entry(entry) -> str:
    color = {"ADD": "green", "UPDATE": "cyan", "DELETE": "red"}[entry.action.value]
    stamp = entry.timestamp.strftime("%Y-%m-%d %H:%M:%S")
    line = f"{stamp}  {click.style(f'{entry.action.value:<6}', fg=color)}  {entry.tissue} (α/β = {entry.alpha_beta:g})"
    if entry.action.value == "UPDATE" and entry.previous_alpha_beta is not None:
        line += f"  was {entry.previous_tissue} (α/β = {entry.previous_alpha_beta:g})"
    return line


def _format_calculation(calc) -> str:
    stamp = calc.date.strftime("%Y-%m-%d %H:%M")
    label = f"  [{calc.tissue_label}]" if calc.tissue_label else ""
    return (
        f"{calc.id:>5}  {stamp}  {calc.fractions} x {calc.dose:g} Gy, α/β = {calc.alpha_beta:g}"
        f"  BED = {calc.bed:.2f} Gy  EQD2 = {calc.eqd2:.2f} Gy{label}"
    )


@click.group()
@click.option("--database-url", envvar="RADCALC_DATABASE_URL", default=None, help="sqlite URL of the local store (or set RADCALC_DATABASE_URL)")
@click.option("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING, ...)")
@click.pass_context
def cli(ctx, database_url, log_level):
    """Top-level CLI group for the radcalc tool."""
    settings = get_settings()
    if database_url:
        settings.database_url = database_url
    if log_level:
        settings.log_level = log_level.upper()
    configure_logging(settings.log_level)
    ctx.obj = settings


# ============================================================================
# Calculation
# ============================================================================

@cli.command(name="calc")
@click.argument("dose")
@click.argument("fractions")
@click.option("--alpha-beta", "alpha_beta", default=None, help="α/β ratio in Gy (',' or '.' as decimal separator)")
@click.option("--tissue", default=None, help="Take α/β from this reference tissue")
@click.option("--no-save", is_flag=True, help="Compute only, do not store the result")
@click.pass_obj
def calc(settings, dose: str, fractions: str, alpha_beta, tissue, no_save: bool):
    """Compute BED and EQD2 for FRACTIONS fractions of DOSE Gy."""
    if (alpha_beta is None) == (tissue is None):
        raise click.UsageError("give exactly one of --alpha-beta or --tissue")

    async def work(context):
        label = None
        ab_text = alpha_beta
        if tissue is not None:
            ref = await context.references.by_tissue(tissue)
            if ref is None:
                raise click.BadParameter(f"unknown tissue '{tissue}'", param_hint="--tissue")
            ab_text, label = str(ref.alpha_beta), ref.tissue
        return await context.calculator.calculate(dose, fractions, ab_text, tissue_label=label, save=not no_save)

    outcome = _run(settings, work)

    click.echo(f"Regimen     : {outcome.fractions} x {outcome.dose:g} Gy (total {outcome.total_dose:g} Gy)")
    click.echo(f"α/β         : {outcome.alpha_beta:g} Gy" + (f" ({outcome.tissue_label})" if outcome.tissue_label else ""))
    click.echo(f"              {describe_alpha_beta(outcome.alpha_beta)}")
    click.echo(click.style(f"BED         : {outcome.bed:.2f} Gy", bold=True))
    click.echo(click.style(f"EQD2        : {outcome.eqd2:.2f} Gy", bold=True))
    if not outcome.safety.safe:
        click.echo(click.style(f"⚠️  {outcome.safety.warning}: {outcome.safety.recommendation}", fg="yellow"))
    if outcome.saved:
        click.echo(click.style(f"✓ Saved as calculation {outcome.calculation_id}", fg="green"))
    elif outcome.save_error:
        click.echo(click.style(f"✗ Not saved: {outcome.save_error}", fg="red"), err=True)


@cli.group(name="calcs")
def calcs_group():
    """Saved calculation history."""
    pass


@calcs_group.command(name="list")
@click.option("--limit", default=50, type=int, help="Maximum number of rows")
@click.pass_obj
def calcs_list(settings, limit: int):
    """List saved calculations, newest first."""
    rows = _run(settings, lambda context: context.calculations.list(limit))
    if not rows:
        click.echo("No calculations saved.")
    for row in rows:
        click.echo(_format_calculation(row))


@calcs_group.command(name="delete")
@click.argument("calculation_id", type=int)
@click.pass_obj
def calcs_delete(settings, calculation_id: int):
    """Delete one calculation."""
    _run(settings, lambda context: context.calculations.delete(calculation_id))
    click.echo(click.style(f"✓ Calculation {calculation_id} deleted", fg="green"))


@calcs_group.command(name="clear")
@click.confirmation_option(prompt="Delete every saved calculation?", help="Skip confirmation prompt")
@click.pass_obj
def calcs_clear(settings):
    """Delete all calculations."""
    removed = _run(settings, lambda context: context.calculations.delete_all())
    click.echo(click.style(f"✓ Removed {removed} calculations", fg="green"))


@calcs_group.command(name="stats")
@click.pass_obj
def calcs_stats(settings):
    """Show calculation totals and averages."""
    stats = _run(settings, lambda context: context.calculations.stats())

    click.echo(click.style("Calculation Statistics", bold=True))
    click.echo("=" * 40)
    click.echo(f"  Total     : {click.style(str(stats.total), fg='cyan', bold=True)}")
    click.echo(f"  Today     : {stats.today_count}")
    if stats.total:
        click.echo(f"  Avg dose  : {stats.average_dose:.2f} Gy")
        click.echo(f"  Avg fx    : {stats.average_fractions:.1f}")
        click.echo(f"  Avg α/β   : {stats.average_alpha_beta:.2f} Gy")
    if stats.recent:
        click.echo(f"\n{click.style('Recent', fg='cyan', bold=True)}")
        for row in stats.recent:
            click.echo(_format_calculation(row))


# ============================================================================
# Reference table
# ============================================================================

@cli.group(name="refs")
def refs_group():
    """Tissue α/β reference table."""
    pass


@refs_group.command(name="list")
@click.pass_obj
def refs_list(settings):
    """List all tissues."""
    for ref in _run(settings, lambda context: context.references.list()):
        click.echo(_format_reference(ref))


@refs_group.command(name="search")
@click.argument("text")
@click.pass_obj
def refs_search(settings, text: str):
    """Find tissues whose name or description contains TEXT."""
    found = _run(settings, lambda context: context.references.search(text))
    if not found:
        click.echo(f"No tissue matches '{text}'.")
    for ref in found:
        click.echo(_format_reference(ref))


@refs_group.command(name="show")
@click.argument("reference_id", type=int)
@click.pass_obj
def refs_show(settings, reference_id: int):
    """Show one tissue with its citations."""
    ref = _run(settings, lambda context: context.references.by_id(reference_id))
    if ref is None:
        click.echo(click.style(f"✗ No tissue reference with id {reference_id}", fg="red"), err=True)
        raise click.Abort()
    click.echo(_format_reference(ref))
    click.echo(f"      {describe_alpha_beta(ref.alpha_beta)}")
    for c in ref.citations:
        click.echo(f"      - {c.title}" + (f" ({c.year})" if c.year else "") + (f" {c.url}" if c.url else ""))


def _reference_options(func):
    func = click.option("--citation", "citations", multiple=True, help="Citation as 'title|year|url' (repeatable)")(func)
    func = click.option("--description", default="", help="Free-text description")(func)
    return func


@refs_group.command(name="add")
@click.argument("tissue")
@click.argument("alpha_beta", type=float)
@_reference_options
@click.pass_obj
def refs_add(settings, tissue: str, alpha_beta: float, description: str, citations):
    """Add TISSUE with ratio ALPHA_BETA."""
    parsed = [_parse_citation(c) for c in citations]
    ref = _run(settings, lambda context: context.references.add(tissue, alpha_beta, description, parsed))
    click.echo(click.style(f"✓ Added {ref.tissue} (id {ref.id})", fg="green"))


@refs_group.command(name="update")
@click.argument("reference_id", type=int)
@click.argument("tissue")
@click.argument("alpha_beta", type=float)
@_reference_options
@click.pass_obj
def refs_update(settings, reference_id: int, tissue: str, alpha_beta: float, description: str, citations):
    """Replace every field of reference REFERENCE_ID."""
    parsed = [_parse_citation(c) for c in citations]
    ref = _run(settings, lambda context: context.references.update(reference_id, tissue, alpha_beta, description, parsed))
    click.echo(click.style(f"✓ Updated {ref.tissue} (id {ref.id})", fg="green"))


@refs_group.command(name="delete")
@click.argument("reference_id", type=int)
@click.pass_obj
def refs_delete(settings, reference_id: int):
    """Delete reference REFERENCE_ID."""
    _run(settings, lambda context: context.references.delete(reference_id))
    click.echo(click.style(f"✓ Reference {reference_id} deleted", fg="green"))


# ============================================================================
# Change history
# ============================================================================

@cli.group(name="history")
def history_group():
    """Audit trail of reference table changes."""
    pass


@history_group.command(name="recent")
@click.option("--limit", default=100, type=int, help="Maximum number of entries")
@click.option("--offset", default=0, type=int, help="Entries to skip")
@click.pass_obj
def history_recent(settings, limit: int, offset: int):
    """Show the newest changes."""
    entries = _run(settings, lambda context: context.audit.query_recent(limit, offset))
    if not entries:
        click.echo("No history entries.")
    for entry in entries:
        click.echo(_format_entry(entry))


@history_group.command(name="window")
@click.argument("start", type=click.DateTime())
@click.argument("end", type=click.DateTime())
@click.pass_obj
def history_window(settings, start: datetime, end: datetime):
    """Show changes between START and END (UTC)."""
    for entry in _run(settings, lambda context: context.audit.query(start, end)):
        click.echo(_format_entry(entry))


@history_group.command(name="count")
@click.pass_obj
def history_count(settings):
    """Number of history entries."""
    click.echo(str(_run(settings, lambda context: context.audit.count())))


@history_group.command(name="trim")
@click.option("--older-than-days", default=None, type=int, help="Retention horizon (default: RADCALC_HISTORY_RETENTION_DAYS)")
@click.confirmation_option(prompt="Permanently delete old history entries?", help="Skip confirmation prompt")
@click.pass_obj
def history_trim(settings, older_than_days):
    """Delete history entries older than the retention horizon."""
    days = older_than_days if older_than_days is not None else settings.history_retention_days
    removed = _run(settings, lambda context: context.audit.trim(days))
    click.echo(click.style(f"✓ Removed {removed} entries older than {days} days", fg="green"))


# ============================================================================
# Database Management Commands
# ============================================================================

@cli.group(name="db")
def db_group():
    """Local store management commands."""
    pass


@db_group.command(name="init")
@click.pass_obj
def init_database(settings):
    """Create or migrate the schema and seed an empty reference table."""
    click.echo(click.style("Initializing database...\n", bold=True))
    click.echo(f"Database: {settings.database_url}\n")

    async def work(context):
        if context.degraded:
            raise RadCalcError("database could not be opened")
        return await context.references.count()

    count = _run(settings, work, seed=True)
    click.echo(click.style(f"✓ Database ready, {count} tissue references", fg="green", bold=True))


@db_group.command(name="migrate")
@click.pass_obj
def migrate_database(settings):
    """Apply additive schema migrations and report what changed."""
    async def work():
        # open without the implicit ensure_schema so the changes are reported here
        storage = await open_storage(settings.database_url, echo=settings.echo_sql, migrate=False)
        try:
            return await storage.schema.migrate()
        finally:
            await storage.dispose()

    applied = _run_async(work())
    if not applied:
        click.echo(click.style("✓ Schema is up to date", fg="green"))
    for change in applied:
        click.echo(click.style(f"  ✓ {change}", fg="green"))


@db_group.command(name="stats")
@click.pass_obj
def show_stats(settings):
    """Show record counts per table."""
    async def work(context):
        calc_stats = await context.calculations.stats()
        return {
            "calculations": calc_stats.total,
            "alpha_beta_references": await context.references.count(),
            "reference_history": await context.audit.count(),
        }

    stats = _run(settings, work, seed=False)
    width = max(len(table) for table in stats)

    click.echo(click.style("Database Statistics", bold=True))
    click.echo("=" * (width + 20))
    for table, count in stats.items():
        color = "green" if count > 0 else "white"
        click.echo(f"  {table:<{width}} : {click.style(str(count), fg=color)}")


__all__ = ["cli"]
