"""Constant values shared by the Serper client, the tools and the hosts."""

# Serper API endpoints and request defaults
SEARCH_URL = "https://google.serper.dev/search"
SCRAPE_URL = "https://scrape.serper.dev"
DEFAULT_TIMEOUT_MS = 30000
MAX_RETRIES = 3
INITIAL_RETRY_DELAY_MS = 1000

MAX_QUERY_LENGTH = 1000
DEFAULT_NUM_RESULTS = 10
DEFAULT_PAGE = 1

# Tools
SEARCH_TOOL_NAME = "search"
SEARCH_TOOL_DISPLAY_NAME = "Web Search"
SEARCH_TOOL_DESCRIPTION = (
    "Search the web for information using Serper API. Use this tool when you need "
    "to find current information, facts, or data from the internet."
)

SCRAPE_TOOL_NAME = "scrape"
SCRAPE_TOOL_DISPLAY_NAME = "Web Scraping"
SCRAPE_TOOL_DESCRIPTION = (
    "Extract content from a web page using Serper API. Use this tool when you need "
    "to read the full content of a specific URL."
)
SCRAPE_DISPLAY_URL_LENGTH = 50

# Settings
MAX_RESULTS_RANGE = (1, 50)
TIMEOUT_RANGE_SECONDS = (5, 120)

# Error messages
NO_API_KEY = "No API key provided"
API_KEY_MISSING = "API key is missing"
REQUEST_FAILED = "API request failed"
REQUEST_TIMEOUT = "Request timeout"
NETWORK_ERROR = "Network error"
REQUEST_CANCELLED = "Request cancelled"
INVALID_URL = "Invalid URL format"
INVALID_QUERY = "Invalid query format"
TOOL_NOT_REGISTERED = "Tool is not registered"
