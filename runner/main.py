import argparse
from pathlib import Path
from typing import Optional

from loguru import logger

from runner import config
from laendlefinder.core.errors import CatalogError, SingleTargetError
from laendlefinder.core.frontier import FrontierRequest, Mode
from laendlefinder.core.sequencer import RunSequencer
from laendlefinder.core.storage import CatalogStore
from laendlefinder.geocoding import Geocoder, geocode_catalog, geocode_url
from laendlefinder.suppliers.laendleimmo import LaendleimmoSupplier
from laendlefinder.suppliers.vol import VolSupplier
from laendlefinder.utils.formatting import ConsoleReporter
from laendlefinder.utils.log import bind_context, configure_logging

# Register suppliers here
SUPPLIERS = {
    "vol": VolSupplier,
    "laendleimmo": LaendleimmoSupplier,
}


def resolve_mode(args: argparse.Namespace) -> Mode:
    if args.url:
        return Mode.SINGLE_TARGET
    if args.refresh_age is not None:
        return Mode.REFRESH_BY_AGE
    if args.refresh:
        return Mode.REFRESH
    if args.max_pages is not None and not args.new:
        return Mode.LEGACY_PAGED
    return Mode.NEW


def build_request(args: argparse.Namespace) -> FrontierRequest:
    return FrontierRequest(
        mode=resolve_mode(args),
        max_pages=args.max_pages,
        max_items=args.max_items,
        refresh_age_days=args.refresh_age,
        target_url=args.url,
    )


def read_cookies(value: Optional[str]) -> Optional[str]:
    """A cookie file path (its contents are used) or a raw cookie string."""
    if not value:
        return None
    path = Path(value)
    if path.is_file():
        return path.read_text(encoding="utf-8").strip() or None
    # a cookie header always holds name=value pairs
    if "=" not in value or path.suffix.lower() == ".txt":
        if value != config.COOKIES:
            logger.warning("Cookie file {} not found, continuing without cookies", value)
        return None
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="laendlefinder", description="Vorarlberg real estate scraper")
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-o", "--output", default=config.OUTPUT_FILE, help="Path to the catalog CSV file")
    common.add_argument("-d", "--debug", action="store_true", help="Enable debug output")

    sub = parser.add_subparsers(dest="cmd", required=True)
    for name in SUPPLIERS:
        sp = sub.add_parser(name, parents=[common], help=f"Scrape {name} listings")
        sp.add_argument("-c", "--cookies", default=config.COOKIES,
                        help="Cookie file or cookie string for authenticated requests")
        sp.add_argument("-m", "--max-pages", type=int, help="Maximum number of listing pages (legacy mode)")
        sp.add_argument("-i", "--max-items", type=int, help="Maximum number of listings to fetch this run")
        sp.add_argument("-r", "--refresh", action="store_true", help="Re-scrape every known URL")
        sp.add_argument("--refresh-age", type=int, metavar="DAYS",
                        help="Re-scrape available listings not seen for more than DAYS days")
        sp.add_argument("-u", "--url", help="Scrape or update a single listing URL")
        sp.add_argument("-n", "--new", action="store_true",
                        help="Gather new URLs until several consecutive pages bring nothing new")

    geo = sub.add_parser("geocode", parents=[common], help="Fill missing coordinates from addresses")
    geo.add_argument("-u", "--url", help="Geocode only the catalog entry with this URL")
    return parser


def make_supplier(args: argparse.Namespace):
    kwargs = dict(user_agent=config.USER_AGENT, stale_page_limit=config.STALE_PAGES)
    if args.cmd == "vol":
        return VolSupplier(cookies=read_cookies(args.cookies), **kwargs)
    return SUPPLIERS[args.cmd](**kwargs)


def run_geocode(store: CatalogStore, url: Optional[str] = None) -> int:
    catalog = store.load()
    geocoder = Geocoder(base_url=config.NOMINATIM_URL, delay=config.GEOCODE_DELAY_SECONDS)
    if url is None:
        geocode_catalog(catalog, geocoder, store)
        return 0
    if url not in catalog:
        logger.error("Property not found in catalog: {}", url)
        return 1
    if geocode_url(catalog, geocoder, url, store):
        print(f"📍 Geocoded {url}: {catalog.get(url).coordinates}")
    else:
        print(f"📍 No coordinates added for {url}")
    return 0


def main(argv: Optional[list] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.debug)
    store = CatalogStore(Path(args.output))

    request = None
    if args.cmd != "geocode":
        try:
            request = build_request(args)
        except ValueError as e:
            parser.error(str(e))

    try:
        if request is None:
            return run_geocode(store, args.url)

        supplier = make_supplier(args)
        sequencer = RunSequencer(
            supplier,
            store,
            reporter=ConsoleReporter(),
            request_delay=config.REQUEST_DELAY_SECONDS,
            log=bind_context(source=supplier.name),
        )
        sequencer.run(request)
        return 0
    except SingleTargetError as e:
        logger.error(str(e))
        return 1
    except CatalogError as e:
        logger.error("Catalog error: {}", e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
