# matching/tests.py
from datetime import timedelta

from django.apps import apps
from django.test import SimpleTestCase, override_settings
from django.utils import timezone
from rest_framework.test import APIClient

from . import confirmation
from .engine import MatchingEngine
from .errors import (
    DuplicateUserError,
    EmptyQueueError,
    MatchingInvariantError,
    NotMatchedError,
    NotRegisteredError,
)
from .queue import UserQueue
from .users import (
    ConfirmationStatus,
    MatchingUser,
    find_common_difficulties,
    find_common_topics,
    has_common_difficulties,
)


def make_user(uid, **kwargs):
    kwargs.setdefault("email", f"{uid}@example.com")
    kwargs.setdefault("difficulties", {"easy": True, "medium": False, "hard": False})
    return MatchingUser(id=uid, **kwargs)


class UserQueueTests(SimpleTestCase):
    def setUp(self):
        self.queue = UserQueue()

    def test_pop_front_is_fifo(self):
        users = [make_user(uid) for uid in ("a", "b", "c")]
        for u in users:
            self.queue.push(u)
        self.assertEqual([self.queue.pop_front().id for _ in users], ["a", "b", "c"])
        self.assertTrue(self.queue.is_empty())

    def test_fifo_preserved_around_out_of_order_removal(self):
        for uid in ("a", "b", "c", "d"):
            self.queue.push(make_user(uid))
        self.assertTrue(self.queue.remove_user(make_user("b")))
        self.assertEqual(self.queue.pop_front().id, "a")
        self.assertEqual(self.queue.pop_front().id, "c")
        self.assertEqual(self.queue.pop_front().id, "d")

    def test_duplicate_push_rejected_and_queue_unchanged(self):
        self.queue.push(make_user("a"))
        self.queue.push(make_user("b"))
        with self.assertRaises(DuplicateUserError):
            self.queue.push(make_user("a", email="other@example.com"))
        self.assertEqual(self.queue.list_user_ids(), ["a", "b"])
        self.assertEqual(self.queue.list_user_emails(), ["a@example.com", "b@example.com"])

    def test_empty_queue_errors(self):
        with self.assertRaises(EmptyQueueError):
            self.queue.peek(0)
        with self.assertRaises(EmptyQueueError):
            self.queue.pop_front()

    def test_peek_out_of_range(self):
        self.queue.push(make_user("a"))
        with self.assertRaises(IndexError):
            self.queue.peek(3)

    def test_peek_does_not_remove(self):
        self.queue.push(make_user("a"))
        self.queue.push(make_user("b"))
        self.assertEqual(self.queue.peek(1).id, "b")
        self.assertEqual(self.queue.count(), 2)

    def test_remove_absent_user_is_noop(self):
        self.queue.push(make_user("a"))
        self.assertFalse(self.queue.remove_user(make_user("zzz")))
        self.assertEqual(self.queue.list_user_ids(), ["a"])
        self.assertTrue(self.queue.contains_user("a"))
        self.assertFalse(self.queue.contains_user("zzz"))


class CompatibilityHelperTests(SimpleTestCase):
    def test_common_topics_and_difficulties(self):
        a = make_user("a", topics=["Arrays", "Graphs", "DP"],
                      difficulties={"easy": True, "medium": True, "hard": False})
        b = make_user("b", topics=["DP", "Arrays"],
                      difficulties={"easy": False, "medium": True, "hard": True})
        self.assertEqual(find_common_topics(a, b), ["Arrays", "DP"])
        self.assertEqual(find_common_difficulties(a, b), ["medium"])
        self.assertTrue(has_common_difficulties(a, b))

    def test_no_common_difficulty(self):
        a = make_user("a", difficulties={"easy": True, "medium": False, "hard": False})
        b = make_user("b", difficulties={"easy": False, "medium": False, "hard": True})
        self.assertFalse(has_common_difficulties(a, b))


class MatchingEngineTests(SimpleTestCase):
    def setUp(self):
        self.engine = MatchingEngine()

    def push(self, *uids):
        users = [make_user(uid) for uid in uids]
        for u in users:
            self.engine.push(u)
        return users

    def test_push_is_idempotent(self):
        self.push("a")
        self.engine.push(make_user("a"))
        self.assertEqual(self.engine.length(), 1)

    def test_single_waiting_user_cannot_match_themself(self):
        self.push("a")
        self.assertFalse(self.engine.try_match_with("a"))
        self.assertEqual(self.engine.matching_queue.list_user_ids(), ["a"])
        self.assertTrue(self.engine.confirmation_queue.is_empty())
        self.assertFalse(self.engine.is_user_matched("a"))

    def test_try_match_with_empty_queue(self):
        a = make_user("a")
        self.engine.users.add_user("a", a)
        self.assertFalse(self.engine.try_match_with("a"))

    def test_try_match_takes_longest_waiting_other_user(self):
        self.push("a", "b", "c")
        self.assertTrue(self.engine.try_match_with("c"))
        self.assertEqual(self.engine.matching_queue.list_user_ids(), ["b"])
        self.assertEqual(self.engine.confirmation_queue.list_user_ids(), ["a", "c"])
        self.assertEqual(self.engine.get_matched_user("c").id, "a")
        self.assertEqual(self.engine.get_matched_user("a").id, "c")
        self.assertIsNone(self.engine.get_matched_user("b"))

    def test_caller_at_front_waits_for_someone_else_to_poll(self):
        self.push("a", "b", "c")
        self.assertFalse(self.engine.try_match_with("a"))
        self.assertEqual(self.engine.matching_queue.list_user_ids(), ["a", "b", "c"])
        self.assertTrue(self.engine.confirmation_queue.is_empty())
        self.assertFalse(self.engine.is_user_matched("a"))

        self.assertTrue(self.engine.try_match_with("b"))
        self.assertEqual(self.engine.confirmation_queue.list_user_ids(), ["a", "b"])

    def test_hand_off_clears_both_pointers(self):
        a, b = self.push("a", "b")
        self.engine.match_two_users_together(a, b)
        self.engine.hand_off_matched_users(a, b)
        self.assertIsNone(self.engine.get_matched_user("a"))
        self.assertIsNone(self.engine.get_matched_user("b"))

    def test_matched_user_does_not_match_again(self):
        self.push("a", "b", "c")
        self.engine.try_match_with("b")
        self.assertFalse(self.engine.try_match_with("b"))
        self.assertEqual(self.engine.matching_queue.list_user_ids(), ["c"])

    def test_match_two_users_together_is_symmetric(self):
        a, b = self.push("a", "b")
        self.engine.match_two_users_together(a, b)
        self.assertEqual(a.matched_user_id, "b")
        self.assertEqual(b.matched_user_id, "a")
        self.assertFalse(self.engine.is_user_waiting("a"))
        self.assertFalse(self.engine.is_user_waiting("b"))
        self.assertTrue(self.engine.is_user_in_confirmation("a"))
        self.assertTrue(self.engine.is_user_in_confirmation("b"))

    def test_matching_an_already_matched_user_is_internal_error(self):
        a, b, c = self.push("a", "b", "c")
        self.engine.match_two_users_together(a, b)
        with self.assertRaises(MatchingInvariantError):
            self.engine.match_two_users_together(a, c)

    def test_dismiss_clears_both_pointers(self):
        a, b = self.push("a", "b")
        self.engine.match_two_users_together(a, b)
        self.engine.dismiss_matched_users_after_not_getting_ready(a, b)
        self.assertIsNone(a.matched_user_id)
        self.assertIsNone(b.matched_user_id)

    def test_dismiss_unpaired_users_is_internal_error(self):
        a, b, c = self.push("a", "b", "c")
        self.engine.match_two_users_together(a, b)
        with self.assertRaises(MatchingInvariantError):
            self.engine.dismiss_matched_users_after_not_getting_ready(a, c)

    def test_asymmetric_pointer_detected(self):
        a, b = self.push("a", "b")
        self.engine.match_two_users_together(a, b)
        b.matched_user_id = None
        with self.assertRaises(MatchingInvariantError):
            self.engine.get_matched_user("a")

    def test_cancel_unknown_is_noop(self):
        self.push("a")
        self.engine.cancel_matching("ghost")
        self.assertEqual(self.engine.matching_queue.list_user_ids(), ["a"])
        self.assertEqual(len(self.engine.users), 1)

    def test_cancel_then_push_again(self):
        self.push("a", "b")
        self.engine.cancel_matching("a")
        self.assertFalse(self.engine.is_user_in_matching_service("a"))
        self.push("a")
        self.assertEqual(self.engine.matching_queue.list_user_ids(), ["b", "a"])

    def test_remove_unknown_user_raises(self):
        with self.assertRaises(NotRegisteredError):
            self.engine.remove_user_from_matching("ghost")
        with self.assertRaises(NotRegisteredError):
            self.engine.remove_user_from_confirmation("ghost")
        with self.assertRaises(NotRegisteredError):
            self.engine.get_matched_user("ghost")

    def test_remove_user_from_confirmation(self):
        a, b = self.push("a", "b")
        self.engine.match_two_users_together(a, b)
        self.engine.remove_user_from_confirmation("a")
        self.assertFalse(self.engine.is_user_in_matching_service("a"))
        self.assertEqual(self.engine.confirmation_queue.list_user_ids(), ["b"])

    def test_get_index_reads_wait_queue(self):
        self.push("a", "b")
        self.assertEqual(self.engine.get_index(1).id, "b")
        self.assertEqual(len(self.engine), 2)


class ConfirmationTests(SimpleTestCase):
    def setUp(self):
        self.engine = MatchingEngine()
        self.now = timezone.now()
        for uid in ("a", "b"):
            self.engine.push(make_user(uid, topics=["Graphs"], prog_langs=["python"]))
        self.engine.try_match_with("b")
        confirmation.begin_confirmation(self.engine, "b", now=self.now)

    def test_begin_sets_waiting_and_deadline(self):
        for uid in ("a", "b"):
            user = self.engine.get_user(uid)
            self.assertEqual(user.confirmation_status, ConfirmationStatus.WAITING)
            self.assertEqual(user.confirmation_deadline, self.now + timedelta(seconds=30))

    def test_waiting_until_both_confirm(self):
        confirmation.respond(self.engine, "a", accept=True)
        outcome = confirmation.check_confirmation(self.engine, "a", now=self.now)
        self.assertEqual(outcome.status, ConfirmationStatus.WAITING)
        self.assertEqual(outcome.matched_user.id, "b")

    def test_both_confirm_shares_room(self):
        confirmation.respond(self.engine, "a")
        confirmation.respond(self.engine, "b")
        first = confirmation.check_confirmation(self.engine, "a", now=self.now)
        second = confirmation.check_confirmation(self.engine, "b", now=self.now)
        self.assertEqual(first.status, ConfirmationStatus.CONFIRMED)
        self.assertEqual(second.status, ConfirmationStatus.CONFIRMED)
        self.assertEqual(first.room_id, second.room_id)
        self.assertEqual(second.handoff["matchedUserId"], "a")
        self.assertEqual(first.handoff["common"]["topics"], ["Graphs"])
        self.assertEqual(first.handoff["common"]["progLangs"], ["python"])
        self.assertEqual(len(self.engine.users), 0)
        self.assertTrue(self.engine.confirmation_queue.is_empty())

    def test_decline_dismisses_pair(self):
        confirmation.respond(self.engine, "a", accept=True)
        confirmation.respond(self.engine, "b", accept=False)
        outcome = confirmation.check_confirmation(self.engine, "a", now=self.now)
        self.assertEqual(outcome.status, ConfirmationStatus.DECLINED)
        self.assertFalse(self.engine.is_user_in_matching_service("a"))
        self.assertIsNone(self.engine.get_user("b").matched_user_id)

        outcome = confirmation.check_confirmation(self.engine, "b", now=self.now)
        self.assertEqual(outcome.status, ConfirmationStatus.DECLINED)
        self.assertEqual(len(self.engine.users), 0)

    def test_timeout_after_deadline(self):
        confirmation.respond(self.engine, "a")
        late = self.now + timedelta(seconds=31)
        outcome = confirmation.check_confirmation(self.engine, "a", now=late)
        self.assertEqual(outcome.status, ConfirmationStatus.TIMEOUT)
        self.assertEqual(self.engine.get_user("b").confirmation_status, ConfirmationStatus.TIMEOUT)
        self.assertEqual(confirmation.respond(self.engine, "b"), ConfirmationStatus.TIMEOUT)

    def test_withdraw_marks_peer_declined(self):
        confirmation.withdraw(self.engine, "a")
        self.assertFalse(self.engine.is_user_in_matching_service("a"))
        peer = self.engine.get_user("b")
        self.assertIsNone(peer.matched_user_id)
        self.assertEqual(peer.confirmation_status, ConfirmationStatus.DECLINED)
        self.assertEqual(self.engine.confirmation_queue.list_user_ids(), ["b"])

    def test_confirmed_pair_is_released_symmetrically(self):
        confirmation.respond(self.engine, "a")
        confirmation.respond(self.engine, "b")
        confirmation.check_confirmation(self.engine, "a", now=self.now)

        peer = self.engine.get_user("b")
        self.assertIsNone(peer.matched_user_id)
        self.assertIsNone(self.engine.get_matched_user("b"))
        self.assertFalse(self.engine.is_user_matched("b"))
        self.assertEqual(confirmation.respond(self.engine, "b"), ConfirmationStatus.CONFIRMED)

    def test_withdraw_after_peer_received_room(self):
        confirmation.respond(self.engine, "a")
        confirmation.respond(self.engine, "b")
        confirmation.check_confirmation(self.engine, "a", now=self.now)

        confirmation.withdraw(self.engine, "b")
        self.assertEqual(len(self.engine.users), 0)
        self.assertTrue(self.engine.confirmation_queue.is_empty())

    def test_sweep_keeps_recent_records(self):
        later = self.now + timedelta(seconds=60)
        self.assertEqual(confirmation.sweep_abandoned(self.engine, now=later), [])
        self.assertEqual(self.engine.confirmation_queue.list_user_ids(), ["a", "b"])

    @override_settings(MATCHING_ABANDONED_AFTER_SECONDS=60)
    def test_sweep_drops_abandoned_pair(self):
        self.engine.push(make_user("c"))
        much_later = self.now + timedelta(seconds=30 + 61)
        removed = confirmation.sweep_abandoned(self.engine, now=much_later)
        self.assertEqual(removed, ["a", "b"])
        self.assertTrue(self.engine.confirmation_queue.is_empty())
        self.assertEqual(self.engine.users.user_ids(), ["c"])

    @override_settings(MATCHING_ABANDONED_AFTER_SECONDS=60)
    def test_sweep_drops_unread_outcome(self):
        confirmation.respond(self.engine, "b", accept=False)
        confirmation.check_confirmation(self.engine, "a", now=self.now)
        much_later = self.now + timedelta(seconds=30 + 61)
        self.assertEqual(confirmation.sweep_abandoned(self.engine, now=much_later), ["b"])
        self.assertEqual(len(self.engine.users), 0)

    def test_unmatched_user_cannot_confirm(self):
        self.engine.push(make_user("c"))
        with self.assertRaises(NotMatchedError):
            confirmation.respond(self.engine, "c")
        with self.assertRaises(NotMatchedError):
            confirmation.check_confirmation(self.engine, "c")


class MatchingApiTests(SimpleTestCase):
    def setUp(self):
        apps.get_app_config("matching").reset()
        self.client = APIClient()

    def start(self, uid, **overrides):
        body = {
            "id": uid,
            "email": f"{uid}@example.com",
            "difficulties": {"easy": True, "medium": True, "hard": False},
            "topics": ["Arrays"],
            "progLangs": ["python"],
        }
        body.update(overrides)
        return self.client.post("/matching/start", body, format="json")

    def post(self, route, **body):
        return self.client.post(f"/matching/{route}", body, format="json")

    def test_start_and_poll_until_match(self):
        self.assertEqual(self.start("a").status_code, 200)
        res = self.post("check_state", userToken="a")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["message"], "matching")
        self.assertEqual(res["Cache-Control"], "no-store, no-cache, must-revalidate")

        self.start("b")
        res = self.post("check_state", userToken="b")
        self.assertEqual(res.data["message"], "match found")
        self.assertEqual(res.data["matchedUser"]["id"], "a")

        res = self.post("check_state", userToken="a")
        self.assertEqual(res.data["message"], "match found")

    def test_duplicate_start_is_absorbed(self):
        self.start("a")
        self.assertEqual(self.start("a").status_code, 200)
        res = self.client.get("/matching/queue")
        self.assertEqual(res.data["userIds"], ["a"])
        self.assertEqual(res.data["emails"], ["a@example.com"])

    def test_start_validates_body(self):
        res = self.client.post("/matching/start", {"id": "a"}, format="json")
        self.assertEqual(res.status_code, 400)
        self.assertIn("error", res.data)

        res = self.start("a", difficulties={"easy": False, "medium": False, "hard": False})
        self.assertEqual(res.status_code, 400)

    def test_check_state_unknown_user(self):
        res = self.post("check_state", userToken="ghost")
        self.assertEqual(res.status_code, 400)

    def test_cancel_is_idempotent(self):
        self.start("a")
        self.assertEqual(self.post("cancel", userToken="a").status_code, 200)
        self.assertEqual(self.post("cancel", userToken="a").status_code, 200)
        self.assertEqual(self.post("check_state", userToken="a").status_code, 400)
        self.assertEqual(self.start("a").status_code, 200)

    def test_confirm_flow(self):
        self.start("a")
        self.start("b")
        self.post("check_state", userToken="b")

        res = self.post("confirm", userToken="a")
        self.assertEqual(res.data["confirmationStatus"], "confirmed")
        res = self.post("check_confirmation_state", userToken="a")
        self.assertEqual(res.data["confirmationStatus"], "waiting")

        self.post("confirm", userToken="b", accept=True)
        res_a = self.post("check_confirmation_state", userToken="a")
        res_b = self.post("check_confirmation_state", userToken="b")
        self.assertEqual(res_a.data["confirmationStatus"], "confirmed")
        self.assertEqual(res_a.data["roomId"], res_b.data["roomId"])
        self.assertEqual(res_b.data["handoff"]["common"]["difficulties"], ["easy", "medium"])

    def test_peer_polls_check_state_after_other_side_confirmed(self):
        self.start("a")
        self.start("b")
        self.post("check_state", userToken="b")
        self.post("confirm", userToken="a")
        self.post("confirm", userToken="b")
        res = self.post("check_confirmation_state", userToken="a")
        self.assertEqual(res.data["confirmationStatus"], "confirmed")

        res = self.post("check_state", userToken="b")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["message"], "match found")
        self.assertEqual(res.data["matchedUser"], {"id": "a", "email": "a@example.com"})

        res = self.post("confirm", userToken="b")
        self.assertEqual(res.data["confirmationStatus"], "confirmed")
        res = self.post("check_confirmation_state", userToken="b")
        self.assertEqual(res.data["confirmationStatus"], "confirmed")
        self.assertEqual(res.data["handoff"]["matchedUserId"], "a")

    def test_first_in_queue_keeps_matching_until_peer_polls(self):
        self.start("a")
        self.start("b")
        res = self.post("check_state", userToken="a")
        self.assertEqual(res.data["message"], "matching")
        self.assertEqual(self.client.get("/matching/queue").data["userIds"], ["a", "b"])

        res = self.post("check_state", userToken="b")
        self.assertEqual(res.data["message"], "match found")
        res = self.post("check_state", userToken="a")
        self.assertEqual(res.data["message"], "match found")

    def test_confirm_before_match_is_conflict(self):
        self.start("a")
        res = self.post("confirm", userToken="a")
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res["Cache-Control"], "no-store, no-cache, must-revalidate")

    def test_confirm_unknown_user(self):
        res = self.post("check_confirmation_state", userToken="ghost")
        self.assertEqual(res.status_code, 400)

    @override_settings(MATCHING_CONFIRMATION_TIMEOUT_SECONDS=0)
    def test_confirmation_times_out(self):
        self.start("a")
        self.start("b")
        self.post("check_state", userToken="b")

        res = self.post("check_confirmation_state", userToken="b")
        self.assertEqual(res.data["confirmationStatus"], "timeout")

        res = self.post("check_state", userToken="a")
        self.assertEqual(res.data["message"], "match dismissed")
        res = self.post("check_confirmation_state", userToken="a")
        self.assertEqual(res.data["confirmationStatus"], "timeout")

        self.assertEqual(self.start("a").status_code, 200)

    def test_cancel_during_confirmation_declines_peer(self):
        self.start("a")
        self.start("b")
        self.post("check_state", userToken="b")
        self.post("cancel", userToken="a")

        res = self.post("check_confirmation_state", userToken="b")
        self.assertEqual(res.data["confirmationStatus"], "declined")
        res = self.client.get("/matching/queue")
        self.assertEqual(res.data["confirming"], [])
