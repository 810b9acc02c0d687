import boardnotify as notify
import boardprofiles as profiles
import boardsession as session
from conftest import PAYER_1, PAYER_2, TARGET

ALICE = profiles.Profile(name="Alice", picture="https://example.com/alice.png")


class Harness:
    def __init__(self):
        self.accumulator = session.SessionAccumulator(TARGET)
        self.scheduler = notify.NotificationScheduler()
        self.emitted = []
        self.scheduler.addListener(self.emitted.append)

    def add(self, record, profile=None):
        self.accumulator.add(record)
        return self.scheduler.onRecordAdded(record, self.accumulator.session, profile)


class TestNotificationScheduler:
    def test_backlog_zaps_never_notify(self, makeRecord):
        harness = Harness()
        harness.add(makeRecord("r1", PAYER_1, 100))
        harness.scheduler.onProfileResolved(PAYER_1, ALICE)
        harness.accumulator.markBacklogComplete()
        harness.scheduler.onProfileResolved(PAYER_1, ALICE)
        assert harness.emitted == []
        assert harness.scheduler.pending == {}

    def test_live_zap_waits_for_profile(self, makeRecord):
        harness = Harness()
        harness.accumulator.markBacklogComplete()
        assert harness.add(makeRecord("r1", PAYER_1, 100, comment="gm")) is None
        assert harness.emitted == []
        notification = harness.scheduler.onProfileResolved(PAYER_1, ALICE)
        assert harness.emitted == [notification]
        assert notification.payerName == "Alice"
        assert notification.payerPicture == "https://example.com/alice.png"
        assert notification.comment == "gm"
        assert notification.amountSats == 100
        assert notification.rank == 1
        assert notification.recordId == "r1"

    def test_each_pending_zap_notifies_once(self, makeRecord):
        harness = Harness()
        harness.accumulator.markBacklogComplete()
        harness.add(makeRecord("r1", PAYER_1, 100))
        harness.scheduler.onProfileResolved(PAYER_1, ALICE)
        assert harness.scheduler.onProfileResolved(PAYER_1, ALICE) is None
        assert len(harness.emitted) == 1

    def test_newer_zap_from_same_payer_replaces_pending(self, makeRecord):
        harness = Harness()
        harness.accumulator.markBacklogComplete()
        harness.add(makeRecord("r1", PAYER_1, 100))
        harness.add(makeRecord("r2", PAYER_1, 7))
        assert len(harness.scheduler.pending) == 1
        harness.scheduler.onProfileResolved(PAYER_1, ALICE)
        assert [n.recordId for n in harness.emitted] == ["r2"]
        assert harness.emitted[0].rank == 2

    def test_known_profile_notifies_immediately(self, makeRecord):
        harness = Harness()
        harness.accumulator.markBacklogComplete()
        notification = harness.add(makeRecord("r1", PAYER_1, 100), ALICE)
        assert notification is not None
        assert harness.emitted == [notification]
        assert harness.scheduler.pending == {}

    def test_rank_is_computed_when_zap_arrives(self, makeRecord):
        harness = Harness()
        harness.add(makeRecord("r0", PAYER_2, 1000))
        harness.accumulator.markBacklogComplete()
        harness.add(makeRecord("r1", PAYER_1, 500))
        # a bigger zap landing before the profile does not change the pending rank
        harness.add(makeRecord("r2", PAYER_2, 5000))
        harness.scheduler.onProfileResolved(PAYER_1, ALICE)
        assert harness.emitted[0].rank == 2

    def test_session_reset_discards_pending(self, makeRecord):
        harness = Harness()
        harness.accumulator.markBacklogComplete()
        harness.add(makeRecord("r1", PAYER_1, 100))
        newSession = harness.accumulator.reset("other")
        harness.scheduler.onSessionReset(newSession.generation)
        assert harness.scheduler.pending == {}
        assert harness.scheduler.generation == 1
        assert harness.scheduler.onProfileResolved(PAYER_1, ALICE) is None
        assert harness.emitted == []

    def test_pending_from_earlier_generation_is_dropped(self, makeRecord):
        harness = Harness()
        harness.accumulator.markBacklogComplete()
        harness.add(makeRecord("r1", PAYER_1, 100))
        harness.scheduler.generation = 5
        assert harness.scheduler.onProfileResolved(PAYER_1, ALICE) is None
        assert harness.emitted == []

    def test_notification_as_dict(self, makeRecord):
        harness = Harness()
        harness.accumulator.markBacklogComplete()
        notification = harness.add(makeRecord("r1", PAYER_1, 100, timestampSec=42), ALICE)
        assert notification.asDict() == {
            "payerName": "Alice",
            "payerPicture": "https://example.com/alice.png",
            "comment": "",
            "amountSats": 100,
            "rank": 1,
            "recordId": "r1",
            "timestampSec": 42,
        }
