import re
from typing import Dict, List, Optional, Tuple

CUISINES: List[str] = [
  "sushi", "ramen", "pizza", "tacos", "taco", "burger", "steak", "vegan",
  "vegetarian", "thai", "indian", "mexican", "chinese", "korean",
  "mediterranean", "bbq",
]

# intent -> (keyword pattern, OSM tag selectors, Google Places types)
PLACE_INTENTS: List[Tuple[str, str, List[str], List[str]]] = [
  ("food", r"eat|food|restaurants?|dinner|lunch|brunch", ['["amenity"="restaurant"]'], ["restaurant"]),
  ("coffee", r"coffee|cafes?|latte|espresso", ['["amenity"="cafe"]'], ["cafe"]),
  ("bar", r"bars?|pubs?|cocktails?|drinks?", ['["amenity"="bar"]', '["amenity"="pub"]'], ["bar"]),
  ("park", r"parks?|outdoors?|picnic", ['["leisure"="park"]'], ["park"]),
  ("museum", r"museums?|exhibits?|exhibitions?|galler(?:y|ies)", ['["tourism"="museum"]'], ["museum"]),
  ("cinema", r"movies?|cinemas?|theaters?|theatres?", ['["amenity"="cinema"]'], ["movie_theater"]),
]

EVENT_CATEGORIES: List[Tuple[str, List[str]]] = [
  ("Food & Dining", [
    "restaurant", "food", "eat", "dinner", "lunch", "breakfast", "cafe", "coffee",
    "pizza", "sushi", "brunch", "cooking", "kitchen", "chef", "meal", "dining",
    "bar", "drinks", "cocktail", "wine", "beer", "happy hour", "pub", "brewery",
  ]),
  ("Entertainment", [
    "movie", "cinema", "film", "theater", "show", "concert", "music", "band",
    "comedy", "club", "nightlife", "dance", "party", "game", "arcade", "bowling",
    "karaoke", "trivia", "entertainment", "performance", "stage",
  ]),
  ("Outdoor", [
    "park", "hike", "trail", "outdoor", "nature", "beach", "lake", "mountain",
    "camping", "picnic", "walk", "run", "bike", "cycling", "kayak", "fishing",
    "garden", "zoo", "outside", "fresh air", "sunshine", "swim",
  ]),
  ("Culture", [
    "museum", "art", "gallery", "history", "culture", "exhibition", "library",
    "book", "education", "learn", "tour", "historic", "monument", "architecture",
    "cultural", "heritage", "science", "planetarium", "aquarium",
  ]),
  ("Sports", [
    "sport", "match", "stadium", "basketball", "football", "baseball", "soccer",
    "tennis", "golf", "hockey", "volleyball", "swimming", "gym", "fitness",
    "workout", "exercise", "athletic", "competition", "tournament",
  ]),
  ("Shopping", [
    "shop", "shopping", "mall", "store", "market", "boutique", "retail",
    "browse", "buy", "purchase", "outlet", "bazaar", "fair", "craft",
    "antique", "thrift", "department store",
  ]),
  ("Social", [
    "meet", "gathering", "social", "friends", "hangout", "chat", "talk",
    "visit", "catch up", "reunion", "celebration", "birthday", "anniversary",
    "holiday", "festival", "community", "group", "society",
  ]),
]


def _matches(pattern: str, text: str) -> bool:
  return re.search(rf"\b(?:{pattern})\b", text) is not None


def match_cuisine(text: str) -> Optional[str]:
  lowered = (text or "").lower()
  for cuisine in CUISINES:
    if _matches(re.escape(cuisine), lowered):
      return cuisine
  return None


def classify_place_intents(text: str) -> Dict[str, object]:
  """Return the coarse place intents in text plus an optional cuisine.

  A cuisine on its own ("sushi tonight") implies the food intent.
  """
  lowered = (text or "").lower()
  cuisine = match_cuisine(lowered)
  intents: List[str] = []
  for intent, pattern, _, _ in PLACE_INTENTS:
    if _matches(pattern, lowered) or (intent == "food" and cuisine):
      intents.append(intent)
  return {"intents": intents, "cuisine": cuisine}


def osm_selectors(intent: str, cuisine: Optional[str] = None) -> List[str]:
  for name, _, selectors, _ in PLACE_INTENTS:
    if name != intent:
      continue
    if intent == "food" and cuisine:
      return [f'["amenity"="restaurant"]["cuisine"~"{cuisine}",i]']
    return list(selectors)
  return []


def google_place_types(intents: List[str]) -> List[str]:
  types: List[str] = []
  for name, _, _, google_types in PLACE_INTENTS:
    if name in intents:
      types.extend(t for t in google_types if t not in types)
  return types


def categorize_event(title: str, description: str | None = None) -> str:
  text = f"{title or ''} {description or ''}".lower()
  for category, keywords in EVENT_CATEGORIES:
    if any(keyword in text for keyword in keywords):
      return category
  return "Other"
