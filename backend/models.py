"""Data models for individuals, marriages and family trees."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Gender(str, Enum):
    """Recorded gender of a person."""
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"


class MarriageStatus(str, Enum):
    """Status of a marriage as seen from either spouse."""
    MARRIED = "Married"
    DIVORCED = "Divorced"
    WIDOWED = "Widowed"
    UNKNOWN = "Unknown"


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase keys (the backup format)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def check_parent_ids(parent_ids: list[str] | None) -> list[str] | None:
    """At most two parents, none of them listed twice."""
    if parent_ids is None:
        return parent_ids
    if len(parent_ids) > 2:
        raise ValueError("a person has at most two parents")
    known = [pid for pid in parent_ids if pid]
    if len(known) != len(set(known)):
        raise ValueError("the same parent is listed twice")
    return parent_ids


class Marriage(CamelModel):
    """One side of a marriage. The spouse holds the mirrored record."""
    spouse_id: str
    status: MarriageStatus = MarriageStatus.UNKNOWN
    date: str | None = None
    place: str | None = None


class PersonCreate(CamelModel):
    """Caller-supplied fields of a new person."""
    first_name: str = ""
    last_name: str | None = None
    family_cast: str | None = None
    gender: Gender = Gender.OTHER
    birth_date: str | None = None
    birth_place: str | None = None
    death_date: str | None = None
    death_place: str | None = None
    cause_of_death: str | None = None
    photos: list[str] = Field(default_factory=list)
    biography: str | None = None
    occupation: str | None = None
    education: str | None = None
    religion: str | None = None
    residence: str | None = None
    notes: str | None = None
    mobile_number: str | None = None
    email: str | None = None
    # father-like first by convention; "" marks an unknown slot. Deleting a
    # parent removes their id, so a remaining parent may move to slot 0.
    parent_ids: list[str] = Field(default_factory=list)
    is_adopted: bool = False

    @field_validator("parent_ids")
    @classmethod
    def validate_parent_ids(cls, value):
        return check_parent_ids(value)


class Person(PersonCreate):
    """A person record inside a tree."""
    id: str
    marriages: list[Marriage] = Field(default_factory=list)
    children_ids: list[str] = Field(default_factory=list)


NON_NULLABLE_FIELDS = {"first_name", "gender", "photos", "parent_ids", "marriages", "is_adopted"}


class PersonUpdate(CamelModel):
    """Partial update of a person. Only explicitly set fields are applied."""
    first_name: str | None = None
    last_name: str | None = None
    family_cast: str | None = None
    gender: Gender | None = None
    birth_date: str | None = None
    birth_place: str | None = None
    death_date: str | None = None
    death_place: str | None = None
    cause_of_death: str | None = None
    photos: list[str] | None = None
    biography: str | None = None
    occupation: str | None = None
    education: str | None = None
    religion: str | None = None
    residence: str | None = None
    notes: str | None = None
    mobile_number: str | None = None
    email: str | None = None
    parent_ids: list[str] | None = None
    marriages: list[Marriage] | None = None
    is_adopted: bool | None = None

    @field_validator("parent_ids")
    @classmethod
    def validate_parent_ids(cls, value):
        return check_parent_ids(value)

    def to_patch(self) -> dict:
        """Return the explicitly set fields keyed by field name.

        A null only clears fields that are optional on a person.
        """
        return {
            name: getattr(self, name)
            for name in self.model_fields_set
            if getattr(self, name) is not None or name not in NON_NULLABLE_FIELDS
        }


class Tree(CamelModel):
    """Named, closed set of people."""
    id: str
    name: str
    people: list[Person] = Field(default_factory=list)


def full_name(person: PersonCreate | None) -> str:
    """Display name: given name, last name and family cast."""
    if person is None:
        return ""
    parts = [person.first_name, person.last_name, person.family_cast]
    return " ".join(part for part in parts if part)
