from django.core.cache import cache
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.models import User
from queenpoll.exceptions import ForbiddenError, NotAuthenticatedError, ValidationError

from .models import Candidate
from .serializers import CandidateSerializer
from .services import CandidateService


def candidate_data(**overrides):
    data = {
        "name": "Maria Lopez",
        "grade": 10,
        "description": "Class delegate and choir lead.",
        "photo_url": "https://example.com/maria.jpg",
    }
    data.update(overrides)
    return data


class CandidateSerializerTest(TestCase):
    # method that test the serializer with valid candidate data
    def test_valid_candidate_data(self):
        serializer = CandidateSerializer(data=candidate_data())
        self.assertTrue(serializer.is_valid(), serializer.errors)

    # method to test if name is too short
    def test_invalid_name_too_short(self):
        serializer = CandidateSerializer(data=candidate_data(name="M"))
        self.assertFalse(serializer.is_valid())
        self.assertIn("name", serializer.errors)

    def test_missing_required_fields(self):
        serializer = CandidateSerializer(data={"name": "Maria Lopez"})
        self.assertFalse(serializer.is_valid())
        for field in ("grade", "description", "photo_url"):
            self.assertIn(field, serializer.errors)

    def test_grade_must_be_positive(self):
        serializer = CandidateSerializer(data=candidate_data(grade=0))
        self.assertFalse(serializer.is_valid())
        self.assertIn("grade", serializer.errors)

    # grades outside the configured list are accepted
    def test_unlisted_grade_is_accepted(self):
        serializer = CandidateSerializer(data=candidate_data(grade=7))
        self.assertTrue(serializer.is_valid(), serializer.errors)


class CandidateServiceTest(TestCase):
    def setUp(self):
        self.service = CandidateService()
        self.judge = User.objects.create_user(username="judge1", password="juez1234", role=User.Role.JUDGE)
        self.student = User.objects.create_user(username="ana", password="secret123")

    def test_judge_creates_candidate(self):
        candidate = self.service.create_candidate(self.judge, candidate_data())
        self.assertEqual(Candidate.objects.count(), 1)
        self.assertEqual(candidate.name, "Maria Lopez")

    def test_student_cannot_create_candidate(self):
        with self.assertRaises(ForbiddenError):
            self.service.create_candidate(self.student, candidate_data())
        self.assertEqual(Candidate.objects.count(), 0)

    def test_missing_caller_cannot_create_candidate(self):
        with self.assertRaises(NotAuthenticatedError):
            self.service.create_candidate(None, candidate_data())
        self.assertEqual(Candidate.objects.count(), 0)

    def test_invalid_data_raises_validation_error(self):
        with self.assertRaises(ValidationError) as ctx:
            self.service.create_candidate(self.judge, candidate_data(photo_url="not a url"))
        self.assertIn("photo_url", ctx.exception.errors)
        self.assertEqual(Candidate.objects.count(), 0)

    def test_get_missing_candidate_returns_none(self):
        self.assertIsNone(self.service.get_candidate(999))

    def test_list_filters_by_grade(self):
        self.service.create_candidate(self.judge, candidate_data(name="Maria", grade=9))
        self.service.create_candidate(self.judge, candidate_data(name="Lucia", grade=10))
        self.service.create_candidate(self.judge, candidate_data(name="Sofia", grade=10))

        self.assertEqual(self.service.list_candidates().count(), 3)
        self.assertEqual(
            [c.name for c in self.service.list_candidates(grade=10)], ["Lucia", "Sofia"]
        )
        self.assertFalse(self.service.list_candidates(grade=12).exists())

    def test_partial_update(self):
        candidate = self.service.create_candidate(self.judge, candidate_data())
        updated = self.service.update_candidate(self.judge, candidate.pk, {"grade": 11})
        self.assertEqual(updated.grade, 11)
        self.assertEqual(updated.name, "Maria Lopez")

    def test_update_missing_candidate_returns_none(self):
        self.assertIsNone(self.service.update_candidate(self.judge, 999, {"grade": 11}))

    def test_student_cannot_update(self):
        candidate = self.service.create_candidate(self.judge, candidate_data())
        with self.assertRaises(ForbiddenError):
            self.service.update_candidate(self.student, candidate.pk, {"name": "Changed"})
        candidate.refresh_from_db()
        self.assertEqual(candidate.name, "Maria Lopez")

    def test_delete_reports_success(self):
        candidate = self.service.create_candidate(self.judge, candidate_data())
        self.assertTrue(self.service.delete_candidate(self.judge, candidate.pk))
        self.assertFalse(self.service.delete_candidate(self.judge, candidate.pk))

    def test_student_cannot_delete(self):
        candidate = self.service.create_candidate(self.judge, candidate_data())
        with self.assertRaises(ForbiddenError):
            self.service.delete_candidate(self.student, candidate.pk)
        self.assertTrue(Candidate.objects.filter(pk=candidate.pk).exists())

    def test_judge_deletes_all_candidates(self):
        self.service.create_candidate(self.judge, candidate_data(name="Maria"))
        self.service.create_candidate(self.judge, candidate_data(name="Lucia"))
        self.assertEqual(self.service.delete_all_candidates(self.judge), 2)
        self.assertFalse(Candidate.objects.exists())

    def test_student_cannot_delete_all_candidates(self):
        self.service.create_candidate(self.judge, candidate_data())
        with self.assertRaises(ForbiddenError):
            self.service.delete_all_candidates(self.student)
        with self.assertRaises(NotAuthenticatedError):
            self.service.delete_all_candidates(None)
        self.assertEqual(Candidate.objects.count(), 1)

    # ids are never handed out twice, even after deletion
    def test_ids_are_not_reused(self):
        first = self.service.create_candidate(self.judge, candidate_data(name="Maria"))
        self.service.delete_candidate(self.judge, first.pk)
        second = self.service.create_candidate(self.judge, candidate_data(name="Lucia"))
        self.assertGreater(second.pk, first.pk)


class CandidateApiTest(APITestCase):
    def setUp(self):
        cache.clear()
        self.judge = User.objects.create_user(username="judge1", password="juez1234", role=User.Role.JUDGE)
        self.student = User.objects.create_user(username="ana", password="secret123")
        self.maria = Candidate.objects.create(**candidate_data(name="Maria", grade=9))
        self.lucia = Candidate.objects.create(**candidate_data(name="Lucia", grade=10))

    def test_list_candidates(self):
        response = self.client.get("/api/v1/candidates/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([c["name"] for c in response.data], ["Maria", "Lucia"])

    def test_list_candidates_by_grade(self):
        response = self.client.get("/api/v1/candidates/", {"grade": 10})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([c["id"] for c in response.data], [self.lucia.pk])

    def test_get_candidate(self):
        response = self.client.get(f"/api/v1/candidates/{self.maria.pk}/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["photo_url"], "https://example.com/maria.jpg")

    def test_get_missing_candidate(self):
        response = self.client.get("/api/v1/candidates/999/")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["status"], "error")

    def test_judge_creates_candidate(self):
        self.client.force_authenticate(self.judge)
        response = self.client.post(
            "/api/v1/admin/candidates/", candidate_data(name="Sofia"), format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(Candidate.objects.filter(name="Sofia").exists())

    def test_student_create_is_forbidden(self):
        self.client.force_authenticate(self.student)
        response = self.client.post(
            "/api/v1/admin/candidates/", candidate_data(name="Sofia"), format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Candidate.objects.filter(name="Sofia").exists())

    def test_anonymous_create_is_unauthorized(self):
        response = self.client.post(
            "/api/v1/admin/candidates/", candidate_data(name="Sofia"), format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_invalid_candidate_payload(self):
        self.client.force_authenticate(self.judge)
        response = self.client.post("/api/v1/admin/candidates/", {"name": "Sofia"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("grade", response.data["errors"])

    def test_judge_updates_candidate(self):
        self.client.force_authenticate(self.judge)
        response = self.client.patch(
            f"/api/v1/admin/candidates/{self.maria.pk}/", {"description": "New bio"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.maria.refresh_from_db()
        self.assertEqual(self.maria.description, "New bio")

    def test_update_missing_candidate(self):
        self.client.force_authenticate(self.judge)
        response = self.client.put("/api/v1/admin/candidates/999/", {"grade": 11}, format="json")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_judge_deletes_candidate(self):
        self.client.force_authenticate(self.judge)
        response = self.client.delete(f"/api/v1/admin/candidates/{self.maria.pk}/")
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        response = self.client.delete(f"/api/v1/admin/candidates/{self.maria.pk}/")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    @override_settings(POLL_GRADES=[9, 10, 11, 12])
    def test_grade_list(self):
        response = self.client.get("/api/v1/grades/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["grades"], [9, 10, 11, 12])
