"""Kinship vocabulary shared by the traversal and relationship code."""

from models import Gender


def gendered_term(gender: Gender, male_word: str, female_word: str, neutral_word: str) -> str:
    """Pick the word matching a person's gender."""
    if gender == Gender.MALE:
        return male_word
    if gender == Gender.FEMALE:
        return female_word
    return neutral_word


def great_prefix(count: int, word: str = "great-") -> str:
    """Repeat the "great-" prefix; zero or negative counts give an empty string."""
    return word * max(count, 0)


def ordinal(n: int) -> str:
    """English ordinal for a positive integer (1st, 2nd, 3rd, 4th, 11th, 21st...)."""
    if n <= 0:
        return str(n)
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def removal_phrase(removal: int) -> str:
    """Cousin removal suffix, e.g. ", once removed"."""
    if removal <= 0:
        return ""
    if removal == 1:
        return ", once removed"
    if removal == 2:
        return ", twice removed"
    return f", {removal} times removed"


def generation_term(generation: int, gender: Gender, *, ascending: bool) -> str:
    """
    Report label for an ancestor or descendant at a given generation.

    Generation 1 is a parent or child, 2 a grandparent or grandchild, and each
    further generation adds a "Great-" prefix.
    """
    if ascending:
        words = ("Father", "Mother", "Parent")
        grand_words = ("Grandfather", "Grandmother", "Grandparent")
    else:
        words = ("Son", "Daughter", "Child")
        grand_words = ("Grandson", "Granddaughter", "Grandchild")

    if generation <= 1:
        return gendered_term(gender, *words)
    prefix = great_prefix(generation - 2, "Great-")
    return prefix + gendered_term(gender, *grand_words)
