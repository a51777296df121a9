"""Keyword-based market categories derived from titles and tags."""

from __future__ import annotations

import re
from collections.abc import Sequence

UNCATEGORIZED = "Uncategorized"
MISCELLANEOUS = "Miscellaneous"

# Checked in order; the first keyword found wins.
TAG_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("Politics", "Politics"),
    ("Political", "Politics"),
    ("Election", "Politics"),
    ("Sports", "Sports"),
    ("Sport", "Sports"),
    ("Crypto", "Crypto"),
    ("Cryptocurrency", "Crypto"),
    ("Bitcoin", "Crypto"),
    ("Ethereum", "Crypto"),
    ("Entertainment", "Entertainment"),
    ("Movie", "Entertainment"),
    ("TV", "Entertainment"),
    ("Economics", "Economics"),
    ("Economic", "Economics"),
    ("Finance", "Economics"),
    ("Financial", "Economics"),
)

CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "Politics": (
        "Politics", "Political", "Election", "Trump", "Harris", "Biden", "White House",
        "Senate", "House of Reps", "Congress", "Democrat", "Republican", "GOP",
        "Governor", "Mayor", "France", "Government",
    ),
    "Sports": (
        "Sports", "NFL", "NBA", "MLB", "NHL", "Soccer", "Football", "Basketball",
        "Baseball", "Tennis", "Golf", "Super Bowl", "Champions League", "F1", "UFC",
    ),
    "Crypto": (
        "Crypto", "Bitcoin", "Ethereum", "Solana", "Coinbase", "Binance", "DeFi", "NFT",
    ),
    "Entertainment": (
        "Entertainment", "Movie", "TV", "Oscars", "Grammys", "Box Office", "Netflix",
        "Disney", "Celebrities",
    ),
    "Economics": (
        "Economics", "Inflation", "Fed", "Interest Rates", "GDP", "Recession",
        "Stock Market", "Economy", "Earnings", "Finance",
    ),
    "Tech": ("Tech", "Technology", "Apple", "Google", "Meta", "Amazon", "Microsoft"),
    "AI": ("AI", "OpenAI", "ChatGPT", "Anthropic"),
    "Science": ("Science", "Space", "NASA", "SpaceX"),
    "Health": ("Health", "COVID", "FDA"),
    "Culture": ("Culture",),
    "Business": ("Business",),
    "Elon Musk": ("Elon Musk", "Tesla", "X.com", "Twitter"),
}


def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    # Whole words only: "AI" must not match "said", "TV" must not match "etv".
    return re.compile(rf"(?<![a-z0-9]){re.escape(keyword.lower())}(?![a-z0-9])")


_CATEGORY_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = tuple(
    (_keyword_pattern(keyword), category)
    for category, keywords in CATEGORY_KEYWORDS.items()
    for keyword in keywords
)


def category_from_tags(tags: Sequence[str] | None) -> str:
    """Category from provider tags: keyword match, else the first tag."""
    if not tags:
        return UNCATEGORIZED
    for tag in tags:
        lowered = tag.lower()
        for keyword, category in TAG_KEYWORDS:
            if keyword.lower() in lowered:
                return category
    return tags[0] or UNCATEGORIZED


def determine_category(title: str, tags: Sequence[str] | None) -> str:
    """Category from title and tags.

    Falls back to the first short, plain tag (capitalised), then to
    ``Miscellaneous``.
    """
    tag_list = list(tags or [])
    text = f"{title} {' '.join(tag_list)}".lower()
    for pattern, category in _CATEGORY_PATTERNS:
        if pattern.search(text):
            return category
    for tag in tag_list:
        if "/" not in tag and 2 < len(tag) < 20:
            return tag[:1].upper() + tag[1:].lower()
    return MISCELLANEOUS
