"""Demo catalogue served while no API token is configured."""

from salvager.types.gateway import ResourceType


def _schema(properties: dict[str, dict[str, object]], required: list[str] | None = None) -> dict[str, object]:
    schema: dict[str, object] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


def _string(description: str) -> dict[str, object]:
    return {"type": "string", "description": description}


def _integer(description: str, default: int) -> dict[str, object]:
    return {"type": "integer", "description": description, "default": default}


DEMO_RESOURCES: list[ResourceType] = [
    ResourceType(
        id="apify/instagram-scraper",
        name="Instagram Scraper",
        description="Extract posts, profiles, hashtags, and comments from Instagram",
        category="social",
        input_schema=_schema(
            {
                "username": _string("Instagram username to scrape"),
                "hashtag": _string("Hashtag to search (without #)"),
                "maxPosts": _integer("Maximum posts to extract", 100),
            }
        ),
    ),
    ResourceType(
        id="apify/twitter-scraper",
        name="Twitter/X Scraper",
        description="Gather tweets, user profiles, followers, and trending topics",
        category="social",
        input_schema=_schema(
            {
                "searchQuery": _string("Search query or username"),
                "maxTweets": _integer("Maximum tweets to extract", 100),
            }
        ),
    ),
    ResourceType(
        id="apify/google-maps-scraper",
        name="Google Maps Scraper",
        description="Extract business listings, reviews, and location data from Google Maps",
        category="maps",
        input_schema=_schema(
            {
                "searchQuery": _string("Business type or name to search"),
                "location": _string("City or area to search in"),
                "maxResults": _integer("Maximum results", 100),
            }
        ),
    ),
    ResourceType(
        id="apify/amazon-scraper",
        name="Amazon Product Scraper",
        description="Scrape product details, prices, reviews, and seller information",
        category="ecommerce",
        input_schema=_schema(
            {
                "searchQuery": _string("Product search query"),
                "maxProducts": _integer("Maximum products", 100),
            }
        ),
    ),
    ResourceType(
        id="apify/web-scraper",
        name="Universal Web Scraper",
        description="Extract data from any website with custom selectors",
        category="web",
        input_schema=_schema(
            {
                "startUrls": {"type": "array", "description": "URLs to scrape (one per line)"},
                "maxPages": _integer("Maximum pages to crawl", 10),
            },
            required=["startUrls"],
        ),
    ),
    ResourceType(
        id="apify/google-search-scraper",
        name="Google Search Scraper",
        description="Scrape Google search results, ads, and related queries",
        category="search",
        input_schema=_schema(
            {
                "queries": {"type": "array", "description": "Search queries (one per line)"},
                "maxResults": _integer("Results per query", 10),
            },
            required=["queries"],
        ),
    ),
    ResourceType(
        id="apify/youtube-scraper",
        name="YouTube Scraper",
        description="Extract video details, comments, channel info, and transcripts",
        category="media",
        input_schema=_schema(
            {
                "searchQuery": _string("Search query or channel URL"),
                "maxVideos": _integer("Maximum videos", 50),
            }
        ),
    ),
    ResourceType(
        id="apify/tiktok-scraper",
        name="TikTok Scraper",
        description="Extract videos, user profiles, hashtags, and engagement metrics",
        category="social",
        input_schema=_schema(
            {
                "hashtag": _string("Hashtag to search (without #)"),
                "maxVideos": _integer("Maximum videos", 100),
            }
        ),
    ),
    ResourceType(
        id="apify/yelp-scraper",
        name="Yelp Scraper",
        description="Scrape business reviews, ratings, and local business data",
        category="maps",
        input_schema=_schema(
            {
                "searchQuery": _string("Business type to search"),
                "location": _string("City or area"),
            }
        ),
    ),
]

DEMO_RESOURCES_BY_ID: dict[str, ResourceType] = {resource.id: resource for resource in DEMO_RESOURCES}


def search_demo_resources(query: str, limit: int = 20) -> list[ResourceType]:
    """Case-insensitive match on name, description and category."""
    needle = query.lower()
    matches = [
        resource
        for resource in DEMO_RESOURCES
        if needle in resource.name.lower()
        or needle in resource.description.lower()
        or needle in resource.category.lower()
    ]
    return matches[:limit]
