import os
import random
import threading
from datetime import date
from unittest import mock

from django.core.cache import cache
from django.db import connection
from django.test import TestCase, TransactionTestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.models import User
from candidates.models import Candidate
from queenpoll.exceptions import (
    AlreadyVotedError,
    CandidateNotFoundError,
    ForbiddenError,
    NotAuthenticatedError,
    UserNotFoundError,
)
from queenpoll.settings import _env_date

from .models import Vote
from .services import VotingService
from .tally import RESULTS_CACHE_KEY, TallyEngine, percentage


def make_candidate(name, grade):
    return Candidate.objects.create(
        name=name,
        grade=grade,
        description=f"{name} for queen",
        photo_url=f"https://example.com/{name.lower()}.jpg",
    )


def make_student(username, grade=None):
    return User.objects.create_user(username=username, password="secret123", grade=grade)


class PollTestCase(TestCase):
    def setUp(self):
        cache.clear()
        self.service = VotingService()
        self.engine = TallyEngine()
        self.judge = User.objects.create_user(username="judge1", password="juez1234", role=User.Role.JUDGE)


class CastVoteTest(PollTestCase):
    def setUp(self):
        super().setUp()
        self.student = make_student("ana", grade=9)
        self.candidate = make_candidate("Maria", 9)

    def test_cast_vote(self):
        vote = self.service.cast_vote(self.student.pk, self.candidate.pk)

        self.assertEqual(vote.voter_id, self.student.pk)
        self.assertEqual(vote.candidate_id, self.candidate.pk)
        self.assertIsNotNone(vote.timestamp)
        self.student.refresh_from_db()
        self.assertTrue(self.student.has_voted)

    def test_second_vote_is_rejected(self):
        other = make_candidate("Lucia", 10)
        self.service.cast_vote(self.student.pk, self.candidate.pk)

        with self.assertRaises(AlreadyVotedError):
            self.service.cast_vote(self.student.pk, other.pk)
        self.assertEqual(Vote.objects.count(), 1)
        self.assertEqual(Vote.objects.get().candidate_id, self.candidate.pk)

    def test_missing_voter_identity(self):
        with self.assertRaises(NotAuthenticatedError):
            self.service.cast_vote(None, self.candidate.pk)
        self.assertFalse(Vote.objects.exists())

    def test_unknown_voter(self):
        with self.assertRaises(UserNotFoundError):
            self.service.cast_vote(999, self.candidate.pk)
        self.assertFalse(Vote.objects.exists())

    # a failed vote leaves no vote row and no flipped flag behind
    def test_unknown_candidate_has_no_side_effects(self):
        with self.assertRaises(CandidateNotFoundError):
            self.service.cast_vote(self.student.pk, 999)

        self.assertFalse(Vote.objects.exists())
        self.student.refresh_from_db()
        self.assertFalse(self.student.has_voted)

    # both requests passed the early check with a stale copy of the voter;
    # only the first commit may succeed
    def test_commit_rechecks_voted_flag(self):
        stale_copy = User.objects.get(pk=self.student.pk)
        self.service.cast_vote(self.student.pk, self.candidate.pk)

        self.assertFalse(stale_copy.has_voted)
        with self.assertRaises(AlreadyVotedError):
            self.service._commit_vote(stale_copy, self.candidate)
        self.assertEqual(Vote.objects.filter(voter=self.student).count(), 1)

    def test_repeated_attempts_succeed_once(self):
        outcomes = []
        for _ in range(5):
            try:
                self.service.cast_vote(self.student.pk, self.candidate.pk)
                outcomes.append("ok")
            except AlreadyVotedError:
                outcomes.append("already_voted")

        self.assertEqual(outcomes, ["ok"] + ["already_voted"] * 4)
        self.assertEqual(Vote.objects.count(), 1)

    # the unique voter constraint catches a vote row the flag does not reflect
    def test_existing_vote_row_blocks_commit(self):
        Vote.objects.create(voter=self.student, candidate=self.candidate)

        with self.assertRaises(AlreadyVotedError):
            self.service.cast_vote(self.student.pk, self.candidate.pk)
        self.student.refresh_from_db()
        self.assertFalse(self.student.has_voted)
        self.assertEqual(Vote.objects.count(), 1)

    def test_get_user_vote(self):
        self.assertIsNone(self.service.get_user_vote(self.student.pk))
        vote = self.service.cast_vote(self.student.pk, self.candidate.pk)
        self.assertEqual(self.service.get_user_vote(self.student.pk), vote)

    # cached results stay until the vote is committed, then are dropped
    def test_results_cache_cleared_on_commit(self):
        self.engine.results(use_cache=True)
        self.assertIsNotNone(cache.get(RESULTS_CACHE_KEY))

        with self.captureOnCommitCallbacks() as callbacks:
            self.service.cast_vote(self.student.pk, self.candidate.pk)
            self.assertIsNotNone(cache.get(RESULTS_CACHE_KEY))

        self.assertEqual(len(callbacks), 1)
        callbacks[0]()
        self.assertIsNone(cache.get(RESULTS_CACHE_KEY))
        self.assertEqual(self.engine.results(use_cache=True)["total_votes"], 1)


class TallyTest(PollTestCase):
    def setUp(self):
        super().setUp()
        self.a = make_candidate("Alicia", 9)
        self.b = make_candidate("Beatriz", 10)
        self.u1 = make_student("u1", grade=9)
        self.u2 = make_student("u2", grade=9)
        self.u3 = make_student("u3", grade=10)

    def test_scenario_two_to_one(self):
        self.service.cast_vote(self.u1.pk, self.a.pk)
        self.service.cast_vote(self.u2.pk, self.a.pk)
        self.service.cast_vote(self.u3.pk, self.b.pk)

        tally = self.engine.tally()
        self.assertEqual([(c.pk, c.vote_count) for c in tally], [(self.a.pk, 2), (self.b.pk, 1)])
        self.assertEqual(percentage(2, 3), 67)
        self.assertEqual(percentage(1, 3), 33)

        results = self.engine.results()
        self.assertEqual(results["total_votes"], 3)
        self.assertEqual([c["percentage"] for c in results["candidates"]], [67, 33])

    def test_ties_are_ordered_by_id(self):
        c = make_candidate("Carla", 11)
        self.service.cast_vote(self.u1.pk, c.pk)
        self.service.cast_vote(self.u2.pk, self.b.pk)

        self.assertEqual([x.pk for x in self.engine.tally()], [self.b.pk, c.pk, self.a.pk])

    def test_candidates_without_votes_are_listed(self):
        tally = self.engine.tally()
        self.assertEqual([(c.pk, c.vote_count) for c in tally], [(self.a.pk, 0), (self.b.pk, 0)])
        self.assertTrue(all(c["percentage"] == 0 for c in self.engine.results()["candidates"]))

    def test_ordering_holds_for_random_distributions(self):
        candidates = [self.a, self.b] + [make_candidate(f"Extra{i}", 9 + i % 4) for i in range(4)]
        rng = random.Random(72)
        for i in range(30):
            voter = make_student(f"voter{i}")
            self.service.cast_vote(voter.pk, rng.choice(candidates).pk)

        tally = self.engine.tally()
        keys = [(-c.vote_count, c.pk) for c in tally]
        self.assertEqual(keys, sorted(keys))
        self.assertEqual(sum(c.vote_count for c in tally), 30)
        self.assertEqual(len(tally), len(candidates))

    def test_deleted_candidate_votes_are_skipped(self):
        self.service.cast_vote(self.u1.pk, self.a.pk)
        self.service.cast_vote(self.u2.pk, self.b.pk)
        self.a.delete()

        tally = self.engine.tally()
        self.assertEqual([(c.pk, c.vote_count) for c in tally], [(self.b.pk, 1)])
        self.assertEqual(self.engine.stats().total_votes, 2)


class PercentageTest(TestCase):
    def test_zero_total(self):
        self.assertEqual(percentage(0, 0), 0)
        self.assertEqual(percentage(5, 0), 0)

    def test_rounds_half_up(self):
        self.assertEqual(percentage(1, 8), 13)
        self.assertEqual(percentage(1, 200), 1)
        self.assertEqual(percentage(2, 3), 67)

    def test_bounds(self):
        self.assertEqual(percentage(4, 4), 100)
        self.assertEqual(percentage(0, 4), 0)
        for votes in range(0, 8):
            self.assertTrue(0 <= percentage(votes, 7) <= 100)

    def test_shares_do_not_exceed_100(self):
        counts = [2, 1]
        self.assertLessEqual(sum(percentage(c, sum(counts)) for c in counts), 100)
        counts = [1, 1, 1]
        self.assertEqual(sum(percentage(c, sum(counts)) for c in counts), 99)


class StatsTest(PollTestCase):
    def test_empty_poll(self):
        stats = self.engine.stats()
        self.assertEqual(stats.total_votes, 0)
        self.assertEqual(stats.total_voters, 0)
        self.assertEqual(stats.eligible_voters, 0)
        self.assertEqual(stats.turnout, 0)
        self.assertIsNone(stats.most_active_grade)

    # the one-vote rule means one voter per vote row
    def test_votes_equal_voters(self):
        candidate = make_candidate("Maria", 9)
        for i in range(4):
            self.service.cast_vote(make_student(f"s{i}").pk, candidate.pk)
        make_student("abstained")

        stats = self.engine.stats()
        self.assertEqual(stats.total_votes, 4)
        self.assertEqual(stats.total_voters, stats.total_votes)
        # the judge is not an eligible voter
        self.assertEqual(stats.eligible_voters, 5)
        self.assertEqual(stats.turnout, 80)

    def test_most_active_grade(self):
        nine = make_candidate("Nina", 9)
        ten = make_candidate("Tania", 10)
        ninth = [make_student(f"n{i}", grade=9) for i in range(4)]
        tenth = [make_student(f"t{i}", grade=10) for i in range(2)]

        # grade 9: 1 vote / 4 students, grade 10: 2 votes / 2 students
        self.service.cast_vote(ninth[0].pk, ten.pk)
        self.service.cast_vote(ninth[1].pk, ten.pk)
        self.service.cast_vote(tenth[0].pk, nine.pk)

        activity = self.engine.stats().most_active_grade
        self.assertEqual(activity.grade, 10)
        self.assertEqual(activity.participation_rate, 1.0)

    def test_most_active_grade_tie_goes_to_lowest(self):
        nine = make_candidate("Nina", 9)
        eleven = make_candidate("Olga", 11)
        s9 = make_student("s9", grade=9)
        s11 = make_student("s11", grade=11)
        self.service.cast_vote(s9.pk, eleven.pk)
        self.service.cast_vote(s11.pk, nine.pk)

        activity = self.engine.stats().most_active_grade
        self.assertEqual(activity.grade, 9)
        self.assertEqual(activity.participation_rate, 1.0)

    # grade 12 has votes but no students, so it cannot win
    def test_grades_without_students_are_excluded(self):
        twelve = make_candidate("Rosa", 12)
        voter = make_student("s9", grade=9)
        make_student("s10", grade=10)
        self.service.cast_vote(voter.pk, twelve.pk)

        activity = self.engine.stats().most_active_grade
        self.assertEqual(activity.grade, 9)
        self.assertEqual(activity.participation_rate, 0.0)

    @override_settings(POLL_CLOSES_AT=date(2026, 5, 15))
    def test_time_remaining(self):
        remaining = self.engine.time_remaining(today=date(2026, 5, 13))
        self.assertEqual(remaining.days, 2)
        self.assertEqual(remaining.closing_date, "2026-05-15")
        self.assertEqual(self.engine.time_remaining(today=date(2026, 6, 1)).days, 0)

    @override_settings(POLL_CLOSES_AT=None)
    def test_time_remaining_unset(self):
        self.assertIsNone(self.engine.stats().time_remaining)

    def test_closing_date_is_parsed_from_environment(self):
        with mock.patch.dict(os.environ, {"POLL_CLOSES_AT": "2026-05-15"}):
            self.assertEqual(_env_date("POLL_CLOSES_AT"), date(2026, 5, 15))
        with mock.patch.dict(os.environ, {"POLL_CLOSES_AT": ""}):
            self.assertIsNone(_env_date("POLL_CLOSES_AT"))

    # a malformed closing date fails when settings load, not on each stats read
    def test_malformed_closing_date_is_rejected(self):
        with mock.patch.dict(os.environ, {"POLL_CLOSES_AT": "15/05/2026"}):
            with self.assertRaises(ValueError):
                _env_date("POLL_CLOSES_AT")


class ResetTest(PollTestCase):
    def setUp(self):
        super().setUp()
        self.a = make_candidate("Alicia", 9)
        self.b = make_candidate("Beatriz", 10)
        self.student = make_student("ana", grade=9)
        self.other = make_student("eva", grade=10)
        self.service.cast_vote(self.student.pk, self.a.pk)
        self.service.cast_vote(self.other.pk, self.b.pk)

    def test_reset_election(self):
        summary = self.service.reset_election(self.judge)

        self.assertEqual(summary, {"votes_deleted": 2, "users_reset": 2})
        self.assertEqual(self.engine.stats().total_votes, 0)
        self.assertFalse(User.objects.filter(has_voted=True).exists())
        self.assertEqual(Candidate.objects.count(), 2)
        # voters may vote again
        self.service.cast_vote(self.student.pk, self.b.pk)

    def test_student_cannot_reset_election(self):
        with self.assertRaises(ForbiddenError):
            self.service.reset_election(self.student)
        self.assertEqual(Vote.objects.count(), 2)
        self.assertTrue(User.objects.get(pk=self.student.pk).has_voted)

    def test_reset_candidates_orphans_votes(self):
        summary = self.service.reset_candidates(self.judge)

        self.assertEqual(summary, {"candidates_deleted": 2})
        self.assertFalse(Candidate.objects.exists())
        self.assertEqual(Vote.objects.count(), 2)
        self.assertEqual(self.engine.tally(), [])
        self.assertEqual(self.engine.results()["candidates"], [])
        stats = self.engine.stats()
        self.assertEqual(stats.total_votes, 2)
        self.assertEqual(stats.most_active_grade.participation_rate, 0.0)

    def test_student_cannot_reset_candidates(self):
        with self.assertRaises(ForbiddenError):
            self.service.reset_candidates(self.student)
        self.assertEqual(Candidate.objects.count(), 2)


class VotingApiTest(APITestCase):
    def setUp(self):
        cache.clear()
        self.judge = User.objects.create_user(username="judge1", password="juez1234", role=User.Role.JUDGE)
        self.student = make_student("ana", grade=9)
        self.a = make_candidate("Alicia", 9)
        self.b = make_candidate("Beatriz", 10)

    def test_cast_vote(self):
        self.client.force_authenticate(self.student)
        response = self.client.post("/api/v1/votes/", {"candidate_id": self.a.pk}, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["data"]["candidate_id"], self.a.pk)
        self.assertEqual(response.data["data"]["voter_id"], self.student.pk)

    def test_vote_requires_authentication(self):
        response = self.client.post("/api/v1/votes/", {"candidate_id": self.a.pk}, format="json")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(Vote.objects.exists())

    def test_second_vote_rejected(self):
        self.client.force_authenticate(self.student)
        self.client.post("/api/v1/votes/", {"candidate_id": self.a.pk}, format="json")
        response = self.client.post("/api/v1/votes/", {"candidate_id": self.b.pk}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["message"], "You have already voted.")

    def test_vote_for_unknown_candidate(self):
        self.client.force_authenticate(self.student)
        response = self.client.post("/api/v1/votes/", {"candidate_id": 999}, format="json")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    # ids that can never exist are still reported as an unknown candidate
    def test_vote_for_non_positive_candidate_id(self):
        self.client.force_authenticate(self.student)
        for candidate_id in (0, -3):
            response = self.client.post(
                "/api/v1/votes/", {"candidate_id": candidate_id}, format="json"
            )
            self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
            self.assertEqual(response.data["status"], "error")
        self.assertFalse(Vote.objects.exists())

    def test_vote_payload_validation(self):
        self.client.force_authenticate(self.student)
        response = self.client.post("/api/v1/votes/", {}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("candidate_id", response.data)

    def test_my_vote(self):
        self.client.force_authenticate(self.student)
        response = self.client.get("/api/v1/votes/mine/")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        self.client.post("/api/v1/votes/", {"candidate_id": self.b.pk}, format="json")
        response = self.client.get("/api/v1/votes/mine/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["candidate_id"], self.b.pk)

    # the results cache is invalidated by every vote
    def test_results_follow_new_votes(self):
        response = self.client.get("/api/v1/results/")
        self.assertEqual(response.data["data"]["total_votes"], 0)

        self.client.force_authenticate(self.student)
        with self.captureOnCommitCallbacks(execute=True):
            self.client.post("/api/v1/votes/", {"candidate_id": self.b.pk}, format="json")

        response = self.client.get("/api/v1/results/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        candidates = response.data["data"]["candidates"]
        self.assertEqual(candidates[0]["id"], self.b.pk)
        self.assertEqual(candidates[0]["vote_count"], 1)
        self.assertEqual(candidates[0]["percentage"], 100)

    def test_stats(self):
        self.client.force_authenticate(self.student)
        self.client.post("/api/v1/votes/", {"candidate_id": self.a.pk}, format="json")

        response = self.client.get("/api/v1/stats/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data["data"]
        self.assertEqual(data["total_votes"], 1)
        self.assertEqual(data["total_voters"], 1)
        self.assertEqual(data["eligible_voters"], 1)
        self.assertEqual(data["most_active_grade"], {"grade": 9, "participation_rate": 1.0})

    def test_reset_election_endpoint(self):
        self.client.force_authenticate(self.student)
        self.client.post("/api/v1/votes/", {"candidate_id": self.a.pk}, format="json")
        response = self.client.post("/api/v1/admin/election/reset/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.judge)
        response = self.client.post("/api/v1/admin/election/reset/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["votes_deleted"], 1)
        self.assertFalse(Vote.objects.exists())

    def test_reset_candidates_endpoint(self):
        self.client.force_authenticate(self.student)
        self.client.post("/api/v1/votes/", {"candidate_id": self.a.pk}, format="json")

        self.client.force_authenticate(self.judge)
        response = self.client.post("/api/v1/admin/candidates/reset/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.get("/api/v1/results/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["candidates"], [])


class ConcurrentVoteTest(TransactionTestCase):
    """
    Runs simultaneous votes for the same voter against the file-backed test database.
    """

    workers = 8

    def setUp(self):
        cache.clear()
        self.student = make_student("ana", grade=9)
        self.candidate = make_candidate("Maria", 9)

    def test_simultaneous_votes_succeed_once(self):
        barrier = threading.Barrier(self.workers)
        outcomes = []
        lock = threading.Lock()

        def vote():
            try:
                barrier.wait()
                try:
                    VotingService().cast_vote(self.student.pk, self.candidate.pk)
                    outcome = "ok"
                except AlreadyVotedError:
                    outcome = "already_voted"
                with lock:
                    outcomes.append(outcome)
            finally:
                connection.close()

        threads = [threading.Thread(target=vote) for _ in range(self.workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(sorted(outcomes), ["already_voted"] * (self.workers - 1) + ["ok"])
        self.assertEqual(Vote.objects.count(), 1)
        self.student.refresh_from_db()
        self.assertTrue(self.student.has_voted)
