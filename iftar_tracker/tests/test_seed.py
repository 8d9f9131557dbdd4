import unittest

from iftar_tracker.aggregation import merge_mosques
from iftar_tracker.catalog import InMemoryCatalogClient, MosqueRecord
from iftar_tracker.seed import INITIAL_MOSQUES, SeedIdMismatchError, upload_seed_mosques


class UploadSeedMosquesTests(unittest.TestCase):
    def setUp(self):
        self.catalog = InMemoryCatalogClient()

    def test_empty_backend_keeps_bundled_ids(self):
        inserted = upload_seed_mosques(self.catalog)

        self.assertEqual([m.id for m in inserted], [m.id for m in INITIAL_MOSQUES])
        merged = merge_mosques(INITIAL_MOSQUES, self.catalog.list_mosques())
        self.assertEqual(len(merged), len(INITIAL_MOSQUES))

    def test_rerun_inserts_nothing(self):
        upload_seed_mosques(self.catalog)
        self.assertEqual(upload_seed_mosques(self.catalog), [])
        self.assertEqual(len(self.catalog.mosques), len(INITIAL_MOSQUES))

    def test_non_empty_backend_is_refused(self):
        self.catalog.mosques.append(MosqueRecord(id="40", name="Other", location="Town"))

        with self.assertRaises(SeedIdMismatchError):
            upload_seed_mosques(self.catalog)
        self.assertEqual(len(self.catalog.mosques), 1)

    def test_allow_new_ids_warns_about_duplicates(self):
        self.catalog = InMemoryCatalogClient(start_id=41)
        self.catalog.mosques.append(MosqueRecord(id="40", name="Other", location="Town"))

        with self.assertLogs("iftar_tracker.seed", level="WARNING") as logs:
            inserted = upload_seed_mosques(self.catalog, allow_new_ids=True)

        self.assertEqual(len(inserted), len(INITIAL_MOSQUES))
        self.assertEqual(len(logs.records), len(INITIAL_MOSQUES))

    def test_dry_run_writes_nothing(self):
        self.assertEqual(upload_seed_mosques(self.catalog, dry_run=True), [])
        self.assertEqual(self.catalog.mosques, [])


if __name__ == "__main__":
    unittest.main()
