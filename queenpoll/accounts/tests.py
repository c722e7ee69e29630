from io import StringIO

from django.contrib.auth.models import AnonymousUser
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.test import APITestCase

from queenpoll.exceptions import ForbiddenError, NotAuthenticatedError

from .models import User
from .permissions import ensure_judge, is_judge


class AccessPolicyTest(TestCase):
    def setUp(self):
        self.judge = User.objects.create_user(username="judge1", password="juez1234", role=User.Role.JUDGE)
        self.student = User.objects.create_user(username="ana", password="secret123")

    def test_is_judge_only_for_judge_role(self):
        self.assertTrue(is_judge(self.judge))
        self.assertFalse(is_judge(self.student))
        self.assertFalse(is_judge(AnonymousUser()))
        self.assertFalse(is_judge(None))

    def test_new_users_default_to_student(self):
        self.assertEqual(self.student.role, User.Role.STUDENT)
        self.assertFalse(self.student.has_voted)
        self.assertFalse(self.student.is_judge)

    def test_ensure_judge_rejects_student(self):
        with self.assertRaises(ForbiddenError):
            ensure_judge(self.student)

    def test_ensure_judge_rejects_missing_caller(self):
        with self.assertRaises(NotAuthenticatedError):
            ensure_judge(None)
        with self.assertRaises(NotAuthenticatedError):
            ensure_judge(AnonymousUser())

    def test_ensure_judge_accepts_judge(self):
        ensure_judge(self.judge)


class AuthApiTest(APITestCase):
    def setUp(self):
        self.student = User.objects.create_user(
            username="ana", password="secret123", display_name="Ana", grade=10
        )

    # registration always creates students, even if a role is posted
    def test_register_creates_student(self):
        response = self.client.post(
            "/api/v1/auth/register/",
            {"username": "luis", "password": "secret123", "grade": 9, "role": "judge"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        user = User.objects.get(username="luis")
        self.assertEqual(user.role, User.Role.STUDENT)
        self.assertEqual(user.grade, 9)
        self.assertTrue(user.check_password("secret123"))
        self.assertNotIn("password", response.data)

    def test_register_rejects_duplicate_username(self):
        response = self.client.post(
            "/api/v1/auth/register/", {"username": "ana", "password": "secret123"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_login_returns_token_and_user(self):
        response = self.client.post(
            "/api/v1/auth/login/", {"username": "ana", "password": "secret123"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["token"], Token.objects.get(user=self.student).key)
        self.assertEqual(response.data["user"]["role"], "student")
        self.assertFalse(response.data["user"]["has_voted"])

    def test_login_with_bad_password(self):
        response = self.client.post(
            "/api/v1/auth/login/", {"username": "ana", "password": "wrong"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Token.objects.exists())

    def test_session_requires_authentication(self):
        response = self.client.get("/api/v1/auth/session/")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_session_with_token(self):
        token = Token.objects.create(user=self.student)
        self.client.credentials(HTTP_AUTHORIZATION=f"Token {token.key}")
        response = self.client.get("/api/v1/auth/session/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["username"], "ana")
        self.assertEqual(response.data["display_name"], "Ana")
        self.assertEqual(response.data["grade"], 10)

    def test_logout_deletes_token(self):
        token = Token.objects.create(user=self.student)
        self.client.credentials(HTTP_AUTHORIZATION=f"Token {token.key}")
        response = self.client.post("/api/v1/auth/logout/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Token.objects.filter(user=self.student).exists())


class CreateJudgeCommandTest(TestCase):
    def test_creates_judge(self):
        out = StringIO()
        call_command("createjudge", "judge1", "--password", "juez1234", stdout=out)
        judge = User.objects.get(username="judge1")
        self.assertEqual(judge.role, User.Role.JUDGE)
        self.assertEqual(judge.display_name, "Judge")
        self.assertTrue(judge.check_password("juez1234"))
        self.assertIn("judge1", out.getvalue())

    def test_refuses_existing_username(self):
        User.objects.create_user(username="judge1", password="x" * 8)
        with self.assertRaises(CommandError):
            call_command("createjudge", "judge1", "--password", "juez1234", stdout=StringIO())
