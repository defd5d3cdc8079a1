from __future__ import annotations

import json
import logging
import sys
from typing import Optional

import click
from pydantic import ValidationError

from .config import get_settings
from .exporter import deals_frame, export
from .models import OutcomeStatus
from .portal_client import run_search
from .search_request import CABIN_CLASSES, PORTALS, SearchRequest

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _format_errors(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'request'}: {err['msg']}"
        for err in exc.errors()
    )


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL")
def cli(log_level: Optional[str]) -> None:
    """Flight deal harvester."""
    level = (log_level or get_settings().log_level).upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)


@cli.command()
@click.argument("origin")
@click.argument("destination")
@click.option("--outbound", required=True, help="Outbound date (YYYY-MM-DD)")
@click.option("--inbound", default=None, help="Inbound date (YYYY-MM-DD)")
@click.option("--adults", default=1, show_default=True, type=int)
@click.option("--children", default=0, show_default=True, type=int)
@click.option("--infants", default=0, show_default=True, type=int)
@click.option(
    "--cabin-class",
    default="Economy",
    show_default=True,
    type=click.Choice(CABIN_CLASSES),
)
@click.option("--currency", default="EUR", show_default=True)
@click.option(
    "--portal",
    "portals",
    multiple=True,
    type=click.Choice(PORTALS),
    help="Portal to query (repeatable, default: all)",
)
@click.option("--json", "as_json", is_flag=True, help="Print the full result as JSON")
@click.option("--csv", "csv_path", default=None, help="Write offers to this CSV file")
@click.option("--deals", is_flag=True, help="With --csv, write cheapest deals instead")
def search(
    origin: str,
    destination: str,
    outbound: str,
    inbound: Optional[str],
    adults: int,
    children: int,
    infants: int,
    cabin_class: str,
    currency: str,
    portals: tuple[str, ...],
    as_json: bool,
    csv_path: Optional[str],
    deals: bool,
) -> None:
    """Search ORIGIN -> DESTINATION on the flight portals."""
    try:
        request = SearchRequest(
            origin=origin,
            destination=destination,
            outbound_date=outbound,
            inbound_date=inbound,
            adults=adults,
            children=children,
            infants=infants,
            cabin_class=cabin_class,
            currency=currency,
            portals=list(portals) or list(PORTALS),
        )
    except ValidationError as exc:
        raise click.UsageError(_format_errors(exc)) from exc

    outcome = run_search(request)
    data = outcome.data

    if csv_path:
        export(data, output="csv", path=csv_path, deals=deals)

    if as_json:
        click.echo(json.dumps(outcome.to_dict(), indent=2))
    else:
        counts = data.counts()
        click.echo(
            f"{request.origin} -> {request.destination}: {outcome.status.value} "
            f"({counts['bundles']} bundles, {counts['flights']} flights, "
            f"{counts['bookingOptions']} offers)"
        )
        for row in deals_frame(data).head(10).itertuples(index=False):
            click.echo(
                f"  {row.price:>10.2f} {row.currency}  {row.route}  "
                f"{row.stops} stop(s)  {row.agency}  [{row.portal}]"
            )
        if outcome.error_message:
            click.echo(f"Errors: {outcome.error_message}", err=True)

    if outcome.status is OutcomeStatus.FAILURE:
        sys.exit(1)


if __name__ == "__main__":
    cli()
