from plan_service.intent_normalizer import (
  categorize_event,
  classify_place_intents,
  google_place_types,
  osm_selectors,
)


def test_coffee_is_only_coffee():
  assert classify_place_intents("coffee nearby") == {"intents": ["coffee"], "cuisine": None}


def test_cuisine_implies_food():
  found = classify_place_intents("sushi tonight")
  assert found == {"intents": ["food"], "cuisine": "sushi"}
  assert osm_selectors("food", "sushi") == ['["amenity"="restaurant"]["cuisine"~"sushi",i]']


def test_bar_splits_into_bar_and_pub():
  assert osm_selectors("bar") == ['["amenity"="bar"]', '["amenity"="pub"]']
  assert osm_selectors("unknown") == []


def test_google_types_follow_intents():
  assert google_place_types(["coffee", "cinema"]) == ["cafe", "movie_theater"]
  assert google_place_types([]) == []


def test_categorize_event():
  assert categorize_event("Jazz concert") == "Entertainment"
  assert categorize_event("Farmers market", "local produce") == "Shopping"
  assert categorize_event("Budget review") == "Other"
