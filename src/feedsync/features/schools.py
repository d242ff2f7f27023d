"""School registry used to restrict sign-up to institutional e-mail domains."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from feedsync.features.validation import ValidationResult, validate_email


class School(BaseModel):
    """A school users can sign up with."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    domain: str | None
    display_name: str
    description: str = ""
    is_guest: bool = False

    def validate_email(self, email: str | None) -> ValidationResult:
        """Validate an e-mail address against this school's domain."""
        return validate_email(email, self.domain)


SCHOOLS: tuple[School, ...] = (
    School(
        id="waseda",
        name="Waseda University",
        domain="waseda.jp",
        display_name="早稲田大学 / Waseda University",
        description="Tokyo, Japan",
    ),
)

# Sign-up without a school e-mail; no domain restriction
GUEST_OPTION = School(
    id="guest",
    name="Guest",
    domain=None,
    display_name="Guest User",
    description="Sign up without school email",
    is_guest=True,
)


def get_school_by_domain(email: str | None) -> School | None:
    """Find the school whose domain exactly matches the e-mail's domain."""
    if not email or "@" not in email:
        return None
    domain = email.split("@", 1)[1].lower()
    for school in SCHOOLS:
        if school.domain is not None and school.domain.lower() == domain:
            return school
    return None


def get_school_by_id(school_id: str | None) -> School | None:
    for school in SCHOOLS:
        if school.id == school_id:
            return school
    return None


def selectable_schools() -> list[School]:
    """Schools offered at sign-up, followed by the guest option."""
    return [*SCHOOLS, GUEST_OPTION]


__all__ = [
    "GUEST_OPTION",
    "SCHOOLS",
    "School",
    "get_school_by_domain",
    "get_school_by_id",
    "selectable_schools",
]
