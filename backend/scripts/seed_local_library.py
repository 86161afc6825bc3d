"""
Seed script for local dev: a small library of lessons, scores and archived services
under dev_assets/, laid out the way the S3 bucket is.
Run from backend/: python scripts/seed_local_library.py
"""
import asyncio
import os
import sys
import time
from datetime import date, timedelta

# Add parent to path so choir_portal is importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from choir_portal.core.config import get_settings
from choir_portal.services.keys import build_key
from choir_portal.services.storage import LocalObjectStore

settings = get_settings()

# Placeholder bytes with the right magic numbers for each type
MP3_STUB = b"ID3\x03\x00\x00\x00\x00\x00\x00" + b"\xff\xfb\x90\x00" + b"\x00" * 413
PDF_STUB = (
    b"%PDF-1.4\n1 0 obj<</Type/Catalog/Pages 2 0 R>>endobj\n"
    b"2 0 obj<</Type/Pages/Kids[]/Count 0>>endobj\ntrailer<</Root 1 0 R>>\n%%EOF\n"
)


async def seed():
    store = LocalObjectStore.from_settings(settings)
    store.root.mkdir(parents=True, exist_ok=True)
    if any(store.root.iterdir()):
        print("Already seeded. Skip.")
        return

    now_ms = int(time.time() * 1000)
    keys: list[str] = []

    for n, title in enumerate(["Kyrie eleison", "Cherubic Hymn", "Axion estin"], start=1):
        folder = ["lessons", "2025", f"Lesson {n:02d}"]
        keys.append(build_key([*folder, "podcasts"], now_ms - n * 60_000, f"{title}.mp3"))
        keys.append(build_key([*folder, "pdfs"], now_ms - n * 60_000, f"{title}.pdf"))

    # Older uploads without a timestamp prefix still show up
    keys.append("scores/Tone 1/pdfs/Evlogitaria.pdf")
    keys.append("scores/Tone 1/podcasts/Evlogitaria.mp3")

    # Public archive: last three Sundays
    today = date.today()
    last_sunday = today - timedelta(days=(today.weekday() + 1) % 7)
    for week in range(3):
        day = last_sunday - timedelta(weeks=week)
        folder = [settings.public_archive_prefix.rstrip("/"), str(day.year), day.isoformat(), "podcasts"]
        keys.append(build_key(folder, now_ms, "Divine Liturgy.mp3"))

    for key in keys:
        await store.write(key, MP3_STUB if key.endswith(".mp3") else PDF_STUB)

    print(f"Seeded {len(keys)} files under {store.root}")
    print(f"Log in with member code {settings.member_access_code!r} or admin code {settings.admin_access_code!r}")


if __name__ == "__main__":
    asyncio.run(seed())
