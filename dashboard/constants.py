"""Dashboard constants shared by the mock engine, the client and the controllers."""

# Page size of every drilldown fetch, mock and backend alike
DRILLDOWN_PAGE_SIZE = 20

# Bounds accepted for the ``limit`` parameter of paginated endpoints
MIN_PAGE_LIMIT = 1
MAX_PAGE_LIMIT = 100

# Last-successful-data cache
QUERY_CACHE_MAX_ENTRIES = 50

# Mock drilldown datasets hold BASE + seed % SPREAD rows
MOCK_DRILLDOWN_BASE_ROWS = 55
MOCK_DRILLDOWN_ROW_SPREAD = 25

# Non-JSON error bodies are cut to this many characters
ERROR_BODY_MAX_CHARS = 200

MOCK_CITIES = ("Brasília", "Goiânia", "São Paulo", "Recife", "Curitiba")
