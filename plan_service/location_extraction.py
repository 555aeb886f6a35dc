"""Heuristic place-name extraction from idea text.

The result is a hint for geocoding, not ground truth: it may find nothing,
the wrong phrase, or only part of the real place name.
"""

import re
from typing import Dict, Iterator, List, Optional

_PHRASE = r"[A-Za-z][A-Za-z .'-]{1,48}"

KNOWN_CITIES: List[str] = [
  "new york", "los angeles", "san francisco", "chicago", "boston", "seattle",
  "portland", "austin", "denver", "miami", "atlanta", "philadelphia",
  "washington", "london", "paris", "tokyo", "berlin", "amsterdam", "barcelona",
  "rome", "madrid", "dublin", "sydney", "melbourne", "toronto", "vancouver",
  "montreal", "kyoto", "osaka", "beijing", "shanghai", "hong kong", "singapore",
  "bangkok", "mumbai", "delhi", "cairo", "dubai", "istanbul", "moscow",
  "st petersburg",
]

# Patterns in precedence order; the candidate is always group "place".
LOCATION_PATTERNS: List["re.Pattern[str]"] = [
  re.compile(
    rf"(?<![A-Za-z])(?:travel\s+to|trip\s+to|visiting|visit|going\s+to|headed\s+to)\s+(?=(?P<place>{_PHRASE}))",
    re.IGNORECASE,
  ),
  re.compile(
    rf"(?<![A-Za-z])(?:in|at|near|around|to|from|exploring)\s+(?=(?P<place>{_PHRASE}))",
    re.IGNORECASE,
  ),
  re.compile(r"(?<![A-Za-z])(?P<place>[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*,\s*(?:[A-Z]{2,3}|[A-Z][a-z]+))(?![A-Za-z])"),
  re.compile(
    rf"(?<![A-Za-z])(?:let'?s\s+go\s+to|heading\s+to)\s+(?=(?P<place>{_PHRASE}))",
    re.IGNORECASE,
  ),
  re.compile(
    r"(?<![A-Za-z])(?P<place>" + "|".join(c.replace(" ", r"\s+") for c in KNOWN_CITIES) + r")(?![A-Za-z])",
    re.IGNORECASE,
  ),
]

STOPLIST = {
  "me", "us", "there", "here", "somewhere", "anywhere", "everywhere",
  "home", "work", "school", "place", "town", "city", "area", "location",
  "this", "that", "these", "those", "some", "any", "all", "every",
  "good", "great", "nice", "cool", "fun", "awesome", "amazing",
  "food", "drink", "eat", "restaurant", "bar", "cafe", "shop",
  "winter", "summer", "spring", "fall", "autumn", "season",
  "time", "day", "night", "morning", "afternoon", "evening",
  "the", "a", "an", "my", "our", "your", "get", "go", "see", "do",
  "park", "museum", "beach", "movies", "cinema", "party", "dinner", "lunch",
  "brunch", "breakfast", "coffee", "friends", "nearby", "downtown",
}

# A captured phrase ends before the first of these words.
BOUNDARY_WORDS = {
  "next", "this", "last", "today", "tomorrow", "tonight", "weekend", "week",
  "month", "year", "on", "for", "with", "and", "or", "but", "during", "in",
  "at", "near", "around", "to", "from", "by", "before", "after", "when",
  "while", "because", "so", "if", "then", "sometime", "soon", "later",
  "january", "february", "march", "april", "may", "june", "july", "august",
  "september", "october", "november", "december",
  "spring", "summer", "fall", "autumn", "winter",
}

FILLER_WORDS = {"the", "spring", "summer", "fall", "autumn", "winter"}

LOCATION_CORRECTIONS: Dict[str, str] = {
  "kyoto": "Kyoto", "tokyo": "Tokyo", "osaka": "Osaka", "paris": "Paris",
  "london": "London", "rome": "Rome", "berlin": "Berlin", "madrid": "Madrid",
  "barcelona": "Barcelona", "amsterdam": "Amsterdam", "vienna": "Vienna",
  "prague": "Prague", "budapest": "Budapest", "dublin": "Dublin",
  "edinburgh": "Edinburgh", "stockholm": "Stockholm", "copenhagen": "Copenhagen",
  "oslo": "Oslo", "helsinki": "Helsinki", "moscow": "Moscow",
  "istanbul": "Istanbul", "athens": "Athens", "lisbon": "Lisbon",
  "zurich": "Zurich", "geneva": "Geneva", "milan": "Milan",
  "florence": "Florence", "venice": "Venice", "naples": "Naples",
  "sydney": "Sydney", "melbourne": "Melbourne", "brisbane": "Brisbane",
  "perth": "Perth", "auckland": "Auckland", "wellington": "Wellington",
  "toronto": "Toronto", "vancouver": "Vancouver", "montreal": "Montreal",
  "ottawa": "Ottawa", "calgary": "Calgary", "new york": "New York",
  "nyc": "New York", "los angeles": "Los Angeles", "la": "Los Angeles",
  "san francisco": "San Francisco", "sf": "San Francisco", "chicago": "Chicago",
  "boston": "Boston", "seattle": "Seattle", "portland": "Portland",
  "austin": "Austin", "denver": "Denver", "miami": "Miami",
  "atlanta": "Atlanta", "philadelphia": "Philadelphia", "philly": "Philadelphia",
  "washington": "Washington DC", "dc": "Washington DC", "las vegas": "Las Vegas",
  "vegas": "Las Vegas", "san diego": "San Diego", "hong kong": "Hong Kong",
  "st petersburg": "St Petersburg",
}


def _cut_at_boundary(candidate: str) -> str:
  kept: List[str] = []
  for word in candidate.split():
    if word.lower().strip(".'-") in BOUNDARY_WORDS:
      break
    kept.append(word)
  return " ".join(kept)


def _title_word(word: str) -> str:
  if len(word) <= 3 and word.isupper():
    return word
  return word[:1].upper() + word[1:].lower()


def normalize_location(location: str) -> str:
  """Lowercase, drop filler words, then apply the correction table or title-case."""
  if not location:
    return location
  parts = []
  for part in location.split(","):
    words = [w for w in re.sub(r"\bth\b", "the", part.strip(), flags=re.IGNORECASE).split()]
    words = [w for w in words if w.lower() not in FILLER_WORDS]
    if not words:
      continue
    lowered = " ".join(w.lower() for w in words)
    corrected = LOCATION_CORRECTIONS.get(lowered)
    parts.append(corrected or " ".join(_title_word(w) for w in words))
  return ", ".join(parts)


def _candidates(text: str) -> Iterator[str]:
  for pattern in LOCATION_PATTERNS:
    for match in pattern.finditer(text):
      candidate = match.group("place").strip()
      if "," not in candidate:
        candidate = _cut_at_boundary(candidate)
      yield re.sub(r"[.,;!?:'-]+$", "", candidate).strip()


def _acceptable(candidate: str) -> bool:
  stripped = " ".join(w for w in candidate.lower().split() if w not in FILLER_WORDS)
  return len(stripped) >= 2 and stripped not in STOPLIST and candidate.lower() not in STOPLIST


def extract_location_phrase(text: str) -> Optional[str]:
  """Return a normalized place name mentioned in text, or None."""
  if not text or not text.strip():
    return None
  for candidate in _candidates(text):
    if _acceptable(candidate):
      return normalize_location(candidate)
  return None
