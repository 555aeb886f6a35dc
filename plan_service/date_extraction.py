"""Map free idea text ("brunch next weekend", "ski trip in winter") to a concrete date range."""

import calendar
import re
from datetime import date, timedelta
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from plan_service.models import DateRange

# Northern Hemisphere, (month, day) start and end.
SEASONS: Dict[str, Tuple[Tuple[int, int], Tuple[int, int]]] = {
  "spring": ((3, 20), (6, 20)),
  "summer": ((6, 21), (9, 22)),
  "fall": ((9, 23), (12, 20)),
  "autumn": ((9, 23), (12, 20)),
  "winter": ((12, 21), (3, 19)),
}

# term -> (rule, duration in days). Longer terms come first so "new year's eve"
# is not read as "new year".
HOLIDAYS: List[Tuple[str, Tuple, int]] = [
  ("new year's eve", ("fixed", 12, 31), 1),
  ("new years eve", ("fixed", 12, 31), 1),
  ("nye", ("fixed", 12, 31), 1),
  ("new year's", ("fixed", 1, 1), 3),
  ("new years", ("fixed", 1, 1), 3),
  ("new year", ("fixed", 1, 1), 3),
  ("valentine's", ("fixed", 2, 14), 1),
  ("valentines", ("fixed", 2, 14), 1),
  ("valentine", ("fixed", 2, 14), 1),
  ("easter", ("easter", -2), 4),
  ("memorial day", ("nth_weekday", 5, calendar.MONDAY, -1, -2), 3),
  ("independence day", ("fixed", 7, 4), 1),
  ("fourth of july", ("fixed", 7, 4), 1),
  ("4th of july", ("fixed", 7, 4), 1),
  ("july 4th", ("fixed", 7, 4), 1),
  ("labor day", ("nth_weekday", 9, calendar.MONDAY, 1, -2), 3),
  ("halloween", ("fixed", 10, 31), 1),
  ("thanksgiving", ("nth_weekday", 11, calendar.THURSDAY, 4, 0), 4),
  ("christmas", ("fixed", 12, 25), 7),
  ("xmas", ("fixed", 12, 25), 7),
]

MONTHS: Dict[str, int] = {
  "january": 1, "jan": 1,
  "february": 2, "feb": 2,
  "march": 3, "mar": 3,
  "april": 4, "apr": 4,
  "may": 5,
  "june": 6, "jun": 6,
  "july": 7, "jul": 7,
  "august": 8, "aug": 8,
  "september": 9, "sept": 9, "sep": 9,
  "october": 10, "oct": 10,
  "november": 11, "nov": 11,
  "december": 12, "dec": 12,
}

RELATIVE_TERMS: List[str] = [
  "today",
  "tomorrow",
  "this week",
  "next week",
  "this weekend",
  "next weekend",
  "this month",
  "next month",
  "this year",
  "next year",
]

# A month match stays in the current month until this day of the month.
MONTH_GRACE_DAY = 15


def _term_pattern(term: str) -> "re.Pattern[str]":
  return re.compile(rf"(?<![a-z0-9]){re.escape(term)}(?![a-z0-9])")


_VOCABULARY: List[Tuple[str, "re.Pattern[str]"]] = [
  (term, _term_pattern(term))
  for term in [*SEASONS, *(h[0] for h in HOLIDAYS), *MONTHS, *RELATIVE_TERMS]
]


def _normalize_text(text: str) -> str:
  return (text or "").lower().replace("’", "'")


def iter_date_terms(text: str) -> Iterator[str]:
  """Yield date terms found in text, in vocabulary precedence order."""
  lowered = _normalize_text(text)
  if not lowered.strip():
    return
  for term, pattern in _VOCABULARY:
    if pattern.search(lowered):
      yield term


def extract_date_terms(text: str) -> List[str]:
  return list(iter_date_terms(text))


def has_semantic_date_terms(text: str) -> bool:
  return next(iter_date_terms(text), None) is not None


def _easter_sunday(year: int) -> date:
  # Anonymous Gregorian algorithm.
  a = year % 19
  b, c = divmod(year, 100)
  d, e = divmod(b, 4)
  f = (b + 8) // 25
  g = (b - f + 1) // 3
  h = (19 * a + b - d - g + 15) % 30
  i, k = divmod(c, 4)
  l = (32 + 2 * e + 2 * i - h - k) % 7
  m = (a + 11 * h + 22 * l) // 451
  month, day = divmod(h + l - 7 * m + 114, 31)
  return date(year, month, day + 1)


def _nth_weekday(year: int, month: int, weekday: int, n: int) -> date:
  days = [
    week[weekday]
    for week in calendar.monthcalendar(year, month)
    if week[weekday] != 0
  ]
  return date(year, month, days[n - 1] if n > 0 else days[n])


def _holiday_start(rule: Tuple, year: int) -> date:
  kind = rule[0]
  if kind == "fixed":
    return date(year, rule[1], rule[2])
  if kind == "easter":
    return _easter_sunday(year) + timedelta(days=rule[1])
  _, month, weekday, n, offset = rule
  return _nth_weekday(year, month, weekday, n) + timedelta(days=offset)


def season_date_range(season: str, today: date) -> Optional[DateRange]:
  bounds = SEASONS.get(season)
  if not bounds:
    return None
  (start_month, start_day), (end_month, end_day) = bounds
  year = today.year

  if start_month > end_month:
    # Winter: starts in December and ends the following March.
    if today <= date(year, end_month, end_day):
      return DateRange(startDate=date(year - 1, start_month, start_day), endDate=date(year, end_month, end_day))
    return DateRange(startDate=date(year, start_month, start_day), endDate=date(year + 1, end_month, end_day))

  if today > date(year, end_month, end_day):
    year += 1
  return DateRange(startDate=date(year, start_month, start_day), endDate=date(year, end_month, end_day))


def holiday_date_range(holiday: str, today: date) -> Optional[DateRange]:
  entry = next((h for h in HOLIDAYS if h[0] == holiday), None)
  if entry is None:
    return None
  _, rule, duration = entry
  start = _holiday_start(rule, today.year)
  if today > start:
    start = _holiday_start(rule, today.year + 1)
  return DateRange(startDate=start, endDate=start + timedelta(days=duration - 1))


def month_date_range(month: str, today: date) -> Optional[DateRange]:
  number = MONTHS.get(month)
  if number is None:
    return None
  year = today.year
  if number < today.month or (number == today.month and today.day > MONTH_GRACE_DAY):
    year += 1
  last_day = calendar.monthrange(year, number)[1]
  return DateRange(startDate=date(year, number, 1), endDate=date(year, number, last_day))


def relative_date_range(term: str, today: date) -> Optional[DateRange]:
  # Weeks run Sunday..Saturday.
  days_since_sunday = (today.weekday() + 1) % 7
  days_to_saturday = (calendar.SATURDAY - today.weekday()) % 7
  is_sunday = today.weekday() == calendar.SUNDAY

  if term == "today":
    return DateRange(startDate=today, endDate=today)
  if term == "tomorrow":
    tomorrow = today + timedelta(days=1)
    return DateRange(startDate=tomorrow, endDate=tomorrow)
  if term == "this week":
    return DateRange(startDate=today, endDate=today + timedelta(days=6 - days_since_sunday))
  if term == "next week":
    start = today + timedelta(days=7 - days_since_sunday)
    return DateRange(startDate=start, endDate=start + timedelta(days=6))
  if term == "this weekend":
    if is_sunday:
      return DateRange(startDate=today, endDate=today)
    saturday = today + timedelta(days=days_to_saturday)
    return DateRange(startDate=saturday, endDate=saturday + timedelta(days=1))
  if term == "next weekend":
    saturday = today + timedelta(days=6 if is_sunday else days_to_saturday + 7)
    return DateRange(startDate=saturday, endDate=saturday + timedelta(days=1))
  if term == "this month":
    last_day = calendar.monthrange(today.year, today.month)[1]
    return DateRange(startDate=today, endDate=date(today.year, today.month, last_day))
  if term == "next month":
    year, month = (today.year + 1, 1) if today.month == 12 else (today.year, today.month + 1)
    last_day = calendar.monthrange(year, month)[1]
    return DateRange(startDate=date(year, month, 1), endDate=date(year, month, last_day))
  if term == "this year":
    return DateRange(startDate=today, endDate=date(today.year, 12, 31))
  if term == "next year":
    return DateRange(startDate=date(today.year + 1, 1, 1), endDate=date(today.year + 1, 12, 31))
  return None


_RESOLVERS: List[Callable[[str, date], Optional[DateRange]]] = [
  season_date_range,
  holiday_date_range,
  month_date_range,
  relative_date_range,
]


def parse_semantic_dates(text: str, today: Optional[date] = None) -> Optional[DateRange]:
  """Convert the first date term in text to a DateRange; None when nothing matches.

  Only the first term found is used, e.g. "summer, maybe next week" resolves
  to summer.
  """
  term = next(iter_date_terms(text), None)
  if term is None:
    return None
  today = today or date.today()
  for resolve in _RESOLVERS:
    found = resolve(term, today)
    if found:
      return found
  return None
