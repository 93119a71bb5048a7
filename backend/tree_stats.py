"""Summary statistics for a tree: counts, lifespans and the oldest people."""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable

from models import Gender, Person

MONTHS = {
    "JAN": 1, "FEB": 2, "MAR": 3, "APR": 4, "MAY": 5, "JUN": 6,
    "JUL": 7, "AUG": 8, "SEP": 9, "OCT": 10, "NOV": 11, "DEC": 12,
}
APPROXIMATE_MODIFIERS = ("ABT", "CAL", "EST")


@dataclass
class TreeStatistics:
    total_people: int
    male_count: int
    female_count: int
    average_lifespan: str
    oldest_living_person: Person | None = None
    oldest_person_ever: Person | None = None


def parse_genealogy_date(value: str | None) -> date | None:
    """
    Parse the date forms people actually type.

    Handles:
    - "1850-03-15" (ISO)
    - "15 MAR 1850", "MAR 1850", "1850" (GEDCOM; missing parts default to 1)
    - an "ABT", "CAL" or "EST" prefix on any of the GEDCOM forms
    Ranges and BEF/AFT dates are not a single point in time and give None.
    """
    if not value:
        return None
    text = value.strip()

    try:
        return datetime.strptime(text, "%Y-%m-%d").date()
    except ValueError:
        pass

    parts = text.upper().replace(".", "").split()
    if parts and parts[0] in APPROXIMATE_MODIFIERS:
        parts = parts[1:]
    if not parts or not parts[-1].isdigit() or len(parts) > 3:
        return None

    year = int(parts[-1])
    month = day = 1
    if len(parts) >= 2:
        month = MONTHS.get(parts[-2][:3])
        if month is None:
            return None
    if len(parts) == 3:
        if not parts[0].isdigit():
            return None
        day = int(parts[0])

    try:
        return date(year, month, day)
    except ValueError:
        return None


def lifespan_in_months(start: date, end: date) -> int:
    years = end.year - start.year
    months = end.month - start.month
    if end.day < start.day:
        months -= 1
    if months < 0:
        years -= 1
        months += 12
    return years * 12 + months


def format_lifespan(total_months: float) -> str:
    if total_months < 0:
        return "N/A"
    years = int(total_months // 12)
    months = round(total_months % 12)
    return f"{years} years, {months} months"


def calculate_age(birth_date: str | None, death_date: str | None = None, today: date | None = None) -> str:
    """Age at death, or today's age for the living, as "X years, Y months"."""
    start = parse_genealogy_date(birth_date)
    if start is None:
        return "N/A"
    if death_date:
        end = parse_genealogy_date(death_date)
        if end is None:
            return "N/A"
    else:
        end = today or date.today()
    return format_lifespan(lifespan_in_months(start, end))


def compute_statistics(people: Iterable[Person], today: date | None = None) -> TreeStatistics:
    """Counts by gender, average lifespan of the deceased and the oldest people."""
    people = list(people)
    today = today or date.today()

    lifespans = []
    oldest_living: tuple[int, Person] | None = None
    oldest_ever: tuple[int, Person] | None = None

    for person in people:
        start = parse_genealogy_date(person.birth_date)
        if start is None:
            continue
        if person.death_date:
            end = parse_genealogy_date(person.death_date)
            if end is None:
                continue
        else:
            end = today
        months = lifespan_in_months(start, end)

        if person.death_date:
            if months > 0:
                lifespans.append(months)
        elif oldest_living is None or months > oldest_living[0]:
            oldest_living = (months, person)
        if oldest_ever is None or months > oldest_ever[0]:
            oldest_ever = (months, person)

    average = sum(lifespans) / len(lifespans) if lifespans else 0

    return TreeStatistics(
        total_people=len(people),
        male_count=sum(1 for p in people if p.gender == Gender.MALE),
        female_count=sum(1 for p in people if p.gender == Gender.FEMALE),
        average_lifespan=format_lifespan(average),
        oldest_living_person=oldest_living[1] if oldest_living else None,
        oldest_person_ever=oldest_ever[1] if oldest_ever else None,
    )
