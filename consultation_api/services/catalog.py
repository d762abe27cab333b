"""Consultation service catalogue helpers."""

import re
import time
import unicodedata

from sqlalchemy import func
from sqlalchemy.orm import Session

from consultation_api.models.consultation_type import ConsultationType


def slugify(text: str) -> str:
    """Generate a URL-safe slug, dropping French accents."""
    decomposed = unicodedata.normalize('NFD', text.lower())
    s = ''.join(char for char in decomposed if not unicodedata.combining(char))
    s = re.sub(r'[^a-z0-9]+', '-', s).strip('-')
    return s or 'consultation'


def allocate_slug(db: Session, name: str, exclude_id: int | None = None) -> str:
    slug = slugify(name)
    query = db.query(ConsultationType.id).filter(ConsultationType.slug == slug)
    if exclude_id is not None:
        query = query.filter(ConsultationType.id != exclude_id)

    if query.first() is None:
        return slug
    return f'{slug}-{int(time.time() * 1000)}'


def next_sort_order(db: Session) -> int:
    current_max = db.query(func.max(ConsultationType.sort_order)).scalar()
    return (current_max or 0) + 1


def list_enabled_services(db: Session) -> list[ConsultationType]:
    return db.query(ConsultationType).filter(
        ConsultationType.enabled.is_(True),
    ).order_by(ConsultationType.sort_order.asc(), ConsultationType.id.asc()).all()
