"""Decide what a checkout's contact details mean for the buyer's records.

Both functions are pure: they take a snapshot of the buyer profile and the
submitted contact info and return what should be written, if anything.
"""
from dataclasses import dataclass

from eventy.dto.purchase import ContactInfo


@dataclass(frozen=True)
class ProfileSnapshot:
    name: str
    email: str
    phone: str | None
    marketing_consent: bool

    @classmethod
    def from_user(cls, user) -> "ProfileSnapshot":
        return cls(
            name=user.full_name,
            email=user.email,
            phone=user.phone_number,
            marketing_consent=bool(user.marketing_consent),
        )


@dataclass(frozen=True)
class NewContactInfo:
    name: str
    email: str
    phone: str
    agree_to_terms: bool
    marketing_consent: bool


def _norm(value: str | None) -> str:
    return (value or "").strip()


def contact_differs(profile: ProfileSnapshot, submitted: ContactInfo) -> bool:
    if _norm(profile.name) != _norm(submitted.name):
        return True
    if _norm(profile.email).lower() != _norm(submitted.email).lower():
        return True
    return _norm(profile.phone) != _norm(submitted.phone)


def resolve_contact_info(profile: ProfileSnapshot, submitted: ContactInfo | None) -> NewContactInfo | None:
    """Return the snapshot to persist, or None when the profile already matches."""
    if submitted is None or not contact_differs(profile, submitted):
        return None
    return NewContactInfo(
        name=_norm(submitted.name),
        email=_norm(submitted.email),
        phone=_norm(submitted.phone),
        agree_to_terms=submitted.agree_to_terms,
        marketing_consent=bool(submitted.marketing_consent),
    )


def resolve_consent_change(profile: ProfileSnapshot, submitted: ContactInfo | None) -> bool | None:
    """Return the new marketing consent value, or None when nothing changes."""
    if submitted is None or submitted.marketing_consent is None:
        return None
    if submitted.marketing_consent == profile.marketing_consent:
        return None
    return submitted.marketing_consent
