import unittest

from iftar_tracker.aggregation import (
    VoteCounts,
    aggregate_votes,
    attach_counts,
    filter_mosques,
    merge_mosques,
    rank_mosques,
    search_and_rank,
)
from iftar_tracker.catalog import MosqueRecord, VoteRecord
from iftar_tracker.seed import INITIAL_MOSQUES


def _mosque(mosque_id, name="Mosque", location="Town", true_count=0, fake_count=0):
    return MosqueRecord(
        id=mosque_id,
        name=name,
        location=location,
        true_count=true_count,
        fake_count=fake_count,
    )


class MergeMosquesTests(unittest.TestCase):
    def test_fetched_copy_wins_and_comes_first(self):
        seed = [_mosque("1", name="Seed one"), _mosque("2", name="Seed two")]
        fetched = [_mosque("2", name="Server two"), _mosque("9", name="Server nine")]

        merged = merge_mosques(seed, fetched)

        self.assertEqual([m.id for m in merged], ["2", "9", "1"])
        self.assertEqual(merged[0].name, "Server two")

    def test_each_identifier_appears_once(self):
        seed = [_mosque("1"), _mosque("2"), _mosque("3")]
        fetched = [_mosque("3"), _mosque("1"), _mosque("3")]

        ids = [m.id for m in merge_mosques(seed, fetched)]

        self.assertEqual(len(ids), len(set(ids)))
        self.assertEqual(sorted(ids), ["1", "2", "3"])

    def test_empty_or_missing_fetch_returns_seed(self):
        seed = list(INITIAL_MOSQUES)
        self.assertEqual(merge_mosques(seed, []), seed)
        self.assertEqual(merge_mosques(seed, None), seed)

    def test_numeric_backend_ids_match_string_seed_ids(self):
        seed = [_mosque("7", name="Seed")]
        fetched = [MosqueRecord.from_row({"id": 7, "name": "Server", "location": "X"})]

        merged = merge_mosques(seed, fetched)

        self.assertEqual(len(merged), 1)
        self.assertEqual(merged[0].name, "Server")


class AggregateVotesTests(unittest.TestCase):
    def test_counts_per_mosque(self):
        votes = [
            VoteRecord("1", "true"),
            VoteRecord("1", "true"),
            VoteRecord("1", "fake"),
        ]
        counts = aggregate_votes(votes)
        self.assertEqual(counts, {"1": VoteCounts(true=2, fake=1)})

    def test_unrecognised_tags_are_ignored(self):
        votes = [VoteRecord("1", "maybe"), VoteRecord("2", "TRUE"), VoteRecord("2", "fake")]
        counts = aggregate_votes(votes)
        self.assertNotIn("1", counts)
        self.assertEqual(counts["2"], VoteCounts(true=0, fake=1))

    def test_attach_defaults_missing_ids_to_zero(self):
        mosques = [_mosque("1", true_count=4, fake_count=4), _mosque("2")]
        attached = attach_counts(mosques, {"2": VoteCounts(true=3, fake=1)})

        self.assertEqual((attached[0].true_count, attached[0].fake_count), (0, 0))
        self.assertEqual((attached[1].true_count, attached[1].fake_count), (3, 1))
        self.assertEqual(attached[1].net_score, 2)


class RankAndFilterTests(unittest.TestCase):
    def test_sorted_by_net_score_descending(self):
        mosques = [
            _mosque("a", true_count=5),
            _mosque("b", fake_count=1),
            _mosque("c"),
        ]
        self.assertEqual([m.net_score for m in rank_mosques(mosques)], [5, 0, -1])

    def test_ties_keep_original_order(self):
        mosques = [
            _mosque("a", true_count=1, fake_count=1),
            _mosque("b", true_count=2),
            _mosque("c"),
            _mosque("d", true_count=3, fake_count=3),
        ]
        self.assertEqual([m.id for m in rank_mosques(mosques)], ["b", "a", "c", "d"])

    def test_search_matches_location_in_seed_data(self):
        results = filter_mosques(INITIAL_MOSQUES, "কান্দিরপাড়")
        self.assertEqual([m.id for m in results], ["1"])

    def test_search_is_case_insensitive_on_name_and_location(self):
        mosques = [
            _mosque("1", name="Central Mosque", location="Old Town"),
            _mosque("2", name="Riverside", location="CENTRAL district"),
            _mosque("3", name="Hilltop", location="North"),
        ]
        self.assertEqual([m.id for m in filter_mosques(mosques, "  central ")], ["1", "2"])

    def test_search_without_matches_is_empty(self):
        self.assertEqual(search_and_rank(INITIAL_MOSQUES, "no such place"), [])

    def test_empty_search_keeps_everything(self):
        self.assertEqual(len(filter_mosques(INITIAL_MOSQUES, "")), len(INITIAL_MOSQUES))
        self.assertEqual(len(filter_mosques(INITIAL_MOSQUES, None)), len(INITIAL_MOSQUES))


if __name__ == "__main__":
    unittest.main()
