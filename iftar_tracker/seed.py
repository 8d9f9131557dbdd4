"""
Listings bundled with the service. Used as the base layer under fetched
rows and as the whole catalog when no backend is configured.
"""

from __future__ import annotations

import logging
from typing import Sequence

from iftar_tracker.catalog import CatalogClient, CatalogError, MosqueRecord, NewMosque

logger = logging.getLogger(__name__)

INITIAL_MOSQUES: tuple[MosqueRecord, ...] = (
    MosqueRecord(
        id="1",
        name="কান্দিরপাড় জামে মসজিদ",
        location="কান্দিরপাড়",
        has_biryani=True,
        menu_items=["ছোলা", "পিঁয়াজু", "বেগুনি", "আলুর চপ", "জিলাপি", "শরবত"],
        latitude=23.4606,
        longitude=91.1809,
    ),
    MosqueRecord(
        id="2",
        name="চকবাজার শাহী মসজিদ",
        location="চকবাজার",
        has_biryani=False,
        menu_items=["ছোলা", "মুড়ি", "পিঁয়াজু", "খেজুর", "আপেল"],
        latitude=23.4550,
        longitude=91.1850,
    ),
    MosqueRecord(
        id="3",
        name="টমছম ব্রিজ মসজিদ",
        location="টমছম ব্রিজ",
        has_biryani=True,
        menu_items=["তেহারি", "বোরহানি", "সালাদ", "খেজুর"],
        latitude=23.4480,
        longitude=91.1750,
    ),
    MosqueRecord(
        id="4",
        name="পুলিশ লাইন জামে মসজিদ",
        location="পুলিশ লাইন",
        has_biryani=False,
        menu_items=["খিচুড়ি", "বেগুন ভাজি", "ডিম", "আচার"],
        latitude=23.4650,
        longitude=91.1700,
    ),
    MosqueRecord(
        id="5",
        name="কুমিল্লা ক্যান্টনমেন্ট কেন্দ্রীয় মসজিদ",
        location="ক্যান্টনমেন্ট",
        has_biryani=True,
        menu_items=["স্পেশাল হালিম", "ছোলা", "জিলাপি", "জুস", "খেজুর"],
        latitude=23.4800,
        longitude=91.1300,
    ),
    MosqueRecord(
        id="6",
        name="ময়নামতি ক্যান্টনমেন্ট মসজিদ",
        location="ময়নামতি",
        has_biryani=False,
        menu_items=["ছোলা", "পিঁয়াজু", "বেগুনি", "শরবত"],
        latitude=23.4900,
        longitude=91.1200,
    ),
)

# Default map view, centered on Kandirpar.
MAP_CENTER = (23.4606, 91.1809)
MAP_ZOOM = 13


class SeedIdMismatchError(CatalogError):
    """Raised when uploaded seed rows would not receive their bundled ids."""


def upload_seed_mosques(
    catalog: CatalogClient,
    *,
    seed: Sequence[MosqueRecord] = INITIAL_MOSQUES,
    dry_run: bool = False,
    allow_new_ids: bool = False,
) -> list[MosqueRecord]:
    """
    Insert bundled listings missing from the backend, in id order.

    Listings are merged with fetched rows by id, so an uploaded copy only
    replaces its bundled counterpart when the backend assigns it the same
    id. That holds when the backend starts empty; otherwise the upload is
    refused unless ``allow_new_ids`` is set, in which case the copies show
    up next to the bundled listings.
    """
    existing = catalog.list_mosques()
    present = {(m.name, m.location) for m in existing}
    pending = [m for m in seed if (m.name, m.location) not in present]
    if not pending:
        return []
    if existing and not allow_new_ids:
        raise SeedIdMismatchError(
            f"Backend already holds {len(existing)} mosques; uploaded seed rows "
            "would get new ids and be listed twice"
        )

    inserted: list[MosqueRecord] = []
    for mosque in sorted(pending, key=lambda m: int(m.id) if m.id.isdigit() else 0):
        if dry_run:
            logger.info("Would insert %s", mosque.name)
            continue
        created = catalog.insert_mosque(
            NewMosque(
                name=mosque.name,
                location=mosque.location,
                has_biryani=mosque.has_biryani,
                menu_items=list(mosque.menu_items),
                latitude=mosque.latitude,
                longitude=mosque.longitude,
            )
        )
        if created.id != mosque.id:
            logger.warning(
                "%s was stored as id %s instead of %s; it will be listed twice",
                mosque.name,
                created.id,
                mosque.id,
            )
        else:
            logger.info("Inserted %s as id %s", created.name, created.id)
        inserted.append(created)
    return inserted
