"""
Title based spam heuristic.

Feeds aggregated from open platforms carry a steady stream of financial
scam and promotion posts. A title is scored by how many distinct words
from a fixed vocabulary it contains.
"""

import re

SPAM_THRESHOLD = 3

SPAM_VOCABULARY: frozenset[str] = frozenset({
    "airdrop",
    "bitcoin",
    "bonus",
    "btc",
    "cash",
    "casino",
    "crypto",
    "doubler",
    "earn",
    "forex",
    "free",
    "giveaway",
    "guaranteed",
    "hack",
    "income",
    "investment",
    "jackpot",
    "loan",
    "loans",
    "lottery",
    "millionaire",
    "money",
    "nft",
    "payday",
    "payout",
    "profit",
    "profits",
    "promo",
    "rich",
    "signals",
    "usdt",
    "viagra",
    "wallet",
    "whatsapp",
    "win",
    "winner",
})

_WORD_PATTERN = re.compile(r"[a-z0-9]+")


def spam_score(title: str | None) -> int:
    """Number of distinct vocabulary words in the lower-cased title."""
    if not title:
        return 0
    words = set(_WORD_PATTERN.findall(title.lower()))
    return len(words & SPAM_VOCABULARY)


def is_spam(title: str | None, threshold: int = SPAM_THRESHOLD) -> bool:
    """True when the title matches `threshold` or more vocabulary words."""
    return spam_score(title) >= threshold
