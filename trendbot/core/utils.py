"""
Text utilities for TrendBot.

Cleaning of provider payloads and keyword extraction from tweet text.
"""

import re
import html
import unicodedata
from collections import Counter
from typing import List

import bleach

# English stopwords plus tweet noise
ENGLISH_STOPWORDS = {
    'a', 'about', 'after', 'all', 'also', 'am', 'an', 'and', 'any', 'are', 'as', 'at',
    'be', 'because', 'been', 'before', 'being', 'but', 'by', 'can', 'could', 'did', 'do',
    'does', 'doing', 'dont', 'for', 'from', 'get', 'got', 'had', 'has', 'have', 'he', 'her',
    'here', 'him', 'his', 'how', 'i', 'if', 'im', 'in', 'into', 'is', 'it', 'its', 'just',
    'like', 'me', 'more', 'my', 'no', 'not', 'now', 'of', 'on', 'one', 'or', 'our', 'out',
    'over', 'she', 'so', 'some', 'than', 'that', 'the', 'their', 'them', 'then', 'there',
    'these', 'they', 'this', 'to', 'too', 'up', 'us', 'very', 'was', 'we', 'were', 'what',
    'when', 'where', 'which', 'who', 'why', 'will', 'with', 'would', 'you', 'your',
    'rt', 'amp', 'via', 'https', 'http', 'co',
}

URL_PATTERN = re.compile(r'https?://\S+')
TOKEN_PATTERN = re.compile(r"[#@]?[\w']+", re.UNICODE)


def strip_html(content: str) -> str:
    """
    Remove all HTML tags and unescape entities.

    Args:
        content: HTML fragment (e.g. a feed entry summary)

    Returns:
        Plain text
    """
    if not content:
        return ""

    stripped = bleach.clean(content, tags=set(), attributes={}, strip=True)
    return clean_text(html.unescape(stripped))


def clean_text(text: str) -> str:
    """
    Clean text content by removing extra whitespace and normalizing.

    Args:
        text: Text to clean

    Returns:
        Cleaned text
    """
    if not text:
        return ""

    # Normalize unicode
    text = unicodedata.normalize('NFKC', text)

    # Remove extra whitespace
    text = re.sub(r'\s+', ' ', text)

    return text.strip()


def tokenize(text: str) -> List[str]:
    """Lowercase word, #hashtag and @mention tokens with URLs removed."""
    if not text:
        return []

    text = URL_PATTERN.sub(' ', clean_text(text).lower())
    return [token.strip("'") for token in TOKEN_PATTERN.findall(text) if token.strip("'#@")]


def count_keywords(text: str, exclude: List[str] = None, min_length: int = 3) -> Counter:
    """
    Count meaningful keywords in a piece of text.

    Args:
        text: Text to analyze (one tweet)
        exclude: Extra tokens to ignore, e.g. the trend's own words
        min_length: Minimum keyword length, not counting a leading # or @

    Returns:
        Counter of keyword -> occurrences, in first-seen order
    """
    excluded = {token.lstrip('#@') for token in (exclude or [])}
    counts = Counter()

    for token in tokenize(text):
        bare = token.lstrip('#@')
        if len(bare) < min_length or bare.isdigit():
            continue
        if bare in ENGLISH_STOPWORDS or bare in excluded:
            continue
        counts[token] += 1

    return counts
