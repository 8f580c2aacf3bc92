import os
from dotenv import load_dotenv

from laendlefinder.suppliers.base import DEFAULT_USER_AGENT, STALE_PAGE_LIMIT
from laendlefinder.core.storage import CATALOG_FILE
from laendlefinder.geocoding import NOMINATIM_URL as DEFAULT_NOMINATIM_URL

load_dotenv()

OUTPUT_FILE = os.getenv("LAENDLEFINDER_OUTPUT", str(CATALOG_FILE))
COOKIES = os.getenv("LAENDLEFINDER_COOKIES", "cookies.txt")

# empty means: use the supplier's own politeness delay
_delay = os.getenv("LAENDLEFINDER_REQUEST_DELAY", "")
REQUEST_DELAY_SECONDS = float(_delay) if _delay else None

STALE_PAGES = int(os.getenv("LAENDLEFINDER_STALE_PAGES", str(STALE_PAGE_LIMIT)))
USER_AGENT = os.getenv("LAENDLEFINDER_USER_AGENT", DEFAULT_USER_AGENT)
NOMINATIM_URL = os.getenv("NOMINATIM_URL", DEFAULT_NOMINATIM_URL)
GEOCODE_DELAY_SECONDS = float(os.getenv("GEOCODE_DELAY_SECONDS", "1.0"))
