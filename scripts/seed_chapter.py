#!/usr/bin/env python3
"""Seed a chapter and the shared vertical catalog.

Usage:
    python scripts/seed_chapter.py [slug] [name]

Examples:
    python scripts/seed_chapter.py
    python scripts/seed_chapter.py erode "Yi Erode"
"""

import sys
from pathlib import Path

# Add parent directory to path so we can import from api
sys.path.insert(0, str(Path(__file__).parent.parent))

from api.config.database import SessionLocal, init_db
from api.models import Chapter, Vertical

# (name, description); shared by every chapter
DEFAULT_VERTICALS = [
    ("Masoom", "Child safety and protection from abuse"),
    ("Road Safety", "Traffic accidents, helmet and seatbelt awareness, safer roads"),
    ("Climate Change", "Pollution, waste, water and green cover"),
    ("Health", "Public health, mental health and access to care"),
    ("Accessibility", "Inclusion for people with disabilities"),
    ("Entrepreneurship", "Livelihoods, skills and small business support"),
    ("Learning", "Education quality and student support"),
    ("Innovation", "Technology for civic problems"),
    ("Yuva", "College students and youth engagement"),
    ("Thalir", "School children and school infrastructure"),
]


def create_chapter(db, slug: str, name: str) -> Chapter:
    """Create or get the chapter."""
    existing = db.query(Chapter).filter(Chapter.slug == slug).first()
    if existing:
        print(f"  Chapter {slug} already exists (id={existing.id})")
        return existing

    chapter = Chapter(slug=slug, name=name, is_active=True)
    db.add(chapter)
    db.commit()
    db.refresh(chapter)

    print(f"  Created chapter: {chapter.name} (id={chapter.id})")
    return chapter


def create_verticals(db) -> int:
    """Create any missing shared verticals. Returns how many were added."""
    existing = {
        v.name for v in db.query(Vertical).filter(Vertical.chapter_id.is_(None)).all()
    }

    added = 0
    for order, (name, description) in enumerate(DEFAULT_VERTICALS, start=1):
        if name in existing:
            continue
        db.add(Vertical(name=name, description=description, display_order=order, is_active=True))
        added += 1

    db.commit()
    print(f"  Added {added} verticals ({len(existing)} already present)")
    return added


def main():
    slug = sys.argv[1] if len(sys.argv) >= 2 else "demo"
    name = sys.argv[2] if len(sys.argv) >= 3 else "Demo Chapter"

    init_db()

    db = SessionLocal()
    try:
        print("\n1. Creating chapter...")
        chapter = create_chapter(db, slug, name)

        print("\n2. Creating verticals...")
        create_verticals(db)

        print(f"\nDone. Candidates start at chapterSlug={chapter.slug}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
