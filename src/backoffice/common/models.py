"""Models module for the back-office.

This module contains the shared database building blocks: a TimestampMixin
that adds created_at and updated_at columns, and generate_ksuid for the
public identifiers exposed through the API (K-Sortable Unique IDentifiers,
time-ordered and URL-safe)."""

from tortoise import fields, models
from ksuid import Ksuid


def generate_ksuid() -> str:
    """Generate a K-Sortable Unique IDentifier (KSUID).

    Returns:
        str: The 27 character string form of a new KSUID.
    """
    return str(Ksuid())


class TimestampMixin(models.Model):
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        abstract = True
