"""
Tests for the analytics store: tracking, visit-log capping, persistence
and summary aggregation.
"""

import json
import tempfile
import unittest
from pathlib import Path

import config
from analytics.backends import AnalyticsBackend, JsonFileBackend, MemoryBackend
from analytics.models import AnalyticsDocument, ClientIdentity, VisitType
from analytics.store import AnalyticsStore, format_timestamp
from core.errors import AnalyticsStorageError

DAY = config.ANALYTICS_DAY_MS
T0 = 1_760_000_000_000  # Fixed reference time in epoch ms


class FakeClock:
    """Returns T0, T0+step, T0+2*step, ... on successive calls."""

    def __init__(self, start=T0, step=1000):
        self.now = start
        self.step = step

    def __call__(self):
        current = self.now
        self.now += self.step
        return current


class BrokenWriteBackend(MemoryBackend):

    def write(self, data):
        raise AnalyticsStorageError("disk full")


class TestTracking(unittest.TestCase):

    def setUp(self):
        self.backend = MemoryBackend()
        self.store = AnalyticsStore(self.backend, clock=FakeClock())

    def test_page_view_then_ai_usage_for_new_user(self):
        identity = ClientIdentity("u_abc123_xyz")

        self.assertEqual(self.store.record_page_view(identity), {"success": True})
        self.assertEqual(self.store.record_ai_usage(identity, "经一章"), {"success": True})

        document = self.store.load()
        user = document.users["u_abc123_xyz"]
        self.assertEqual(document.summary.total_unique_users, 1)
        self.assertEqual(user.page_views, 1)
        self.assertEqual(user.ai_usage, 1)
        self.assertEqual([v.type for v in user.visits], [VisitType.PAGE, VisitType.AI])
        self.assertIsNone(user.visits[0].chapter)
        self.assertEqual(user.visits[1].chapter, "经一章")

    def test_first_and_last_visit_timestamps(self):
        self.store.record_page_view("u_1")
        self.store.record_page_view("u_1")

        user = self.store.load().users["u_1"]
        self.assertEqual(user.first_visit, T0)
        self.assertEqual(user.last_visit, T0 + 1000)

    def test_summary_counters_match_user_totals(self):
        for user_id in ("u_1", "u_2", "u_1"):
            self.store.record_page_view(user_id)
        self.store.record_ai_usage("u_2")
        self.store.record_ai_usage("u_3")

        document = self.store.load()
        self.assertEqual(document.summary.total_unique_users, len(document.users))
        self.assertEqual(document.summary.total_page_views,
                         sum(u.page_views for u in document.users.values()))
        self.assertEqual(document.summary.total_ai_usage,
                         sum(u.ai_usage for u in document.users.values()))

    def test_visit_log_keeps_most_recent_hundred_in_order(self):
        for i in range(150):
            if i % 2:
                self.store.record_ai_usage("u_busy")
            else:
                self.store.record_page_view("u_busy")

        user = self.store.load().users["u_busy"]
        self.assertEqual(len(user.visits), 100)
        self.assertEqual(
            [v.timestamp for v in user.visits],
            [T0 + 1000 * i for i in range(50, 150)]
        )
        self.assertEqual(user.page_views + user.ai_usage, 150)

    def test_each_call_writes_the_whole_document(self):
        self.store.record_page_view("u_1")
        self.store.record_ai_usage("u_1")
        self.assertEqual(self.backend.writes, 2)

    def test_write_failure_still_reports_success(self):
        store = AnalyticsStore(BrokenWriteBackend(), clock=FakeClock())
        self.assertEqual(store.record_page_view("u_1"), {"success": True})
        self.assertEqual(store.load().users, {})

    def test_empty_user_id_reports_success_without_recording(self):
        self.assertEqual(self.store.record_page_view(""), {"success": True})
        self.assertEqual(self.store.record_ai_usage(""), {"success": True})
        self.assertEqual(self.store.load(), AnalyticsDocument())
        self.assertEqual(self.backend.writes, 0)


class TestPersistence(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "nested" / "analytics.json"

    def tearDown(self):
        self._tmp.cleanup()

    def test_missing_file_is_empty_store(self):
        store = AnalyticsStore(JsonFileBackend(self.path))
        self.assertEqual(store.load(), AnalyticsDocument())

    def test_round_trip_preserves_document(self):
        store = AnalyticsStore(JsonFileBackend(self.path), clock=FakeClock())
        store.record_page_view("u_1", "传一章")
        store.record_ai_usage("u_1", "传一章")
        store.record_page_view("u_2")

        on_disk = json.loads(self.path.read_text(encoding="utf-8"))
        reloaded = store.load()

        self.assertEqual(reloaded.to_dict(), on_disk)
        self.assertEqual(AnalyticsDocument.from_dict(on_disk), reloaded)
        self.assertEqual(on_disk["users"]["u_1"]["visits"][1],
                         {"timestamp": T0 + 1000, "type": "ai", "chapter": "传一章"})

    def test_file_is_utf8_without_escapes(self):
        store = AnalyticsStore(JsonFileBackend(self.path), clock=FakeClock())
        store.record_page_view("u_1", "经一章")
        self.assertIn("经一章", self.path.read_text(encoding="utf-8"))

    def test_corrupt_file_falls_back_to_empty_and_recovers(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_text("{not json", encoding="utf-8")
        store = AnalyticsStore(JsonFileBackend(self.path), clock=FakeClock())

        self.assertEqual(store.load(), AnalyticsDocument())
        self.assertEqual(store.record_page_view("u_1"), {"success": True})
        self.assertEqual(store.load().summary.total_page_views, 1)

    def test_wrong_shape_falls_back_to_empty(self):
        store = AnalyticsStore(MemoryBackend({"summary": [], "users": {}}))
        self.assertEqual(store.load(), AnalyticsDocument())

    def test_blank_user_ids_in_file_are_dropped(self):
        data = AnalyticsDocument().to_dict()
        data["users"][""] = {"firstVisit": T0, "lastVisit": T0, "pageViews": 1, "aiUsage": 0, "visits": []}
        store = AnalyticsStore(MemoryBackend(data))
        self.assertEqual(store.load().users, {})
        self.assertEqual(store.compute_summary(now=T0)["users"], [])

    def test_backend_interface_is_abstract(self):
        with self.assertRaises(NotImplementedError):
            AnalyticsBackend().read()


class TestComputeSummary(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock(step=0)
        self.store = AnalyticsStore(MemoryBackend(), clock=self.clock)

    def _at(self, timestamp):
        self.clock.now = timestamp

    def test_fresh_page_view_counts_as_daily_and_weekly_active(self):
        self._at(T0)
        self.store.record_page_view("u_1")

        overview = self.store.compute_summary(now=T0)["overview"]
        self.assertEqual(overview["dailyActiveUsers"], 1)
        self.assertEqual(overview["weeklyActiveUsers"], 1)
        self.assertEqual(overview["dailyPageViews"], 1)

    def test_windows(self):
        self._at(T0 - 3 * DAY)
        self.store.record_page_view("u_week")
        self.store.record_ai_usage("u_week")
        self._at(T0 - 10 * DAY)
        self.store.record_page_view("u_old")
        self._at(T0 - DAY)  # exactly on the daily boundary
        self.store.record_ai_usage("u_day")

        overview = self.store.compute_summary(now=T0)["overview"]
        self.assertEqual(overview["totalUniqueUsers"], 3)
        self.assertEqual(overview["dailyActiveUsers"], 1)
        self.assertEqual(overview["weeklyActiveUsers"], 2)
        self.assertEqual(overview["dailyPageViews"], 0)
        self.assertEqual(overview["dailyAiUsage"], 1)
        self.assertEqual(overview["weeklyPageViews"], 1)
        self.assertEqual(overview["weeklyAiUsage"], 2)

    def test_per_user_frequency_and_display(self):
        self._at(T0 - 4 * DAY)
        for _ in range(3):
            self.store.record_page_view("u_longidentifier")
        self.store.record_ai_usage("u_longidentifier")

        user = self.store.compute_summary(now=T0)["users"][0]
        self.assertEqual(user["userId"], "u_longid...")
        self.assertEqual(user["pageViewsPerDay"], 0.75)
        self.assertEqual(user["aiUsagePerDay"], 0.25)
        self.assertEqual(user["totalPageViews"], 3)
        self.assertEqual(user["lastVisit"], format_timestamp(T0 - 4 * DAY))

    def test_frequency_uses_at_least_one_day(self):
        self._at(T0)
        self.store.record_page_view("u_1")
        self.store.record_page_view("u_1")

        user = self.store.compute_summary(now=T0 + 1000)["users"][0]
        self.assertEqual(user["pageViewsPerDay"], 2.0)

    def test_frequency_rounds_half_up(self):
        self._at(T0 - 8 * DAY)
        self.store.record_page_view("u_one")
        for _ in range(5):
            self.store.record_page_view("u_five")

        users = {u["userId"]: u for u in self.store.compute_summary(now=T0)["users"]}
        self.assertEqual(users["u_one..."]["pageViewsPerDay"], 0.13)
        self.assertEqual(users["u_five..."]["pageViewsPerDay"], 0.63)

    def test_users_sorted_by_last_visit_descending(self):
        self._at(T0 - 2 * DAY)
        self.store.record_page_view("u_first___")
        self._at(T0 - DAY)
        self.store.record_page_view("u_second__")
        self._at(T0)
        self.store.record_page_view("u_third___")

        ids = [u["userId"] for u in self.store.compute_summary(now=T0)["users"]]
        self.assertEqual(ids, ["u_third_...", "u_second...", "u_first_..."])

    def test_summary_does_not_write(self):
        backend = MemoryBackend()
        store = AnalyticsStore(backend, clock=FakeClock())
        store.record_page_view("u_1")
        store.compute_summary()
        self.assertEqual(backend.writes, 1)

    def test_generated_at_format(self):
        self.assertEqual(format_timestamp(0), "1970-01-01T00:00:00.000Z")
        self.assertEqual(self.store.compute_summary(now=0)["generatedAt"], "1970-01-01T00:00:00.000Z")


class TestClientIdentity(unittest.TestCase):

    def test_generate_format(self):
        identity = ClientIdentity.generate()
        self.assertRegex(identity.user_id, r"^u_[0-9a-z]+_[0-9a-z]{9}$")

    def test_generated_ids_differ(self):
        self.assertNotEqual(ClientIdentity.generate(), ClientIdentity.generate())

    def test_display_id(self):
        self.assertEqual(ClientIdentity("u_abcdefghij").display_id, "u_abcdef...")
        self.assertEqual(ClientIdentity("u_1").display_id, "u_1...")


if __name__ == '__main__':
    unittest.main()
