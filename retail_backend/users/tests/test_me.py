from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

from branches.models import Branch

User = get_user_model()


class MeEndpointTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.branch = Branch.objects.create(name="Main", code="MAIN")
        self.user = User.objects.create_user(
            email="Cashier@Example.com",
            password="pass",
            role="cashier",
            first_name="Ama",
            home_branch=self.branch,
        )

    def test_me_returns_capabilities(self):
        self.client.force_authenticate(user=self.user)

        response = self.client.get("/api/auth/me/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["role"], "cashier")
        self.assertEqual(response.data["name"], "Ama")
        self.assertEqual(response.data["homeBranchId"], self.branch.pk)
        self.assertEqual(response.data["capabilities"], ["inventory.view", "pos.sell"])

    def test_me_requires_authentication(self):
        response = self.client.get("/api/auth/me/")

        self.assertEqual(response.status_code, 401)

    def test_jwt_login(self):
        response = self.client.post(
            "/api/auth/jwt/create/",
            {"email": "Cashier@example.com", "password": "pass"},
            format="json",
        )

        self.assertEqual(response.status_code, 200, response.content)
        self.assertIn("access", response.data)


class UserManagerTests(TestCase):
    def test_email_is_required(self):
        with self.assertRaises(ValueError):
            User.objects.create_user(email="  ", password="pass")

    def test_superuser_defaults(self):
        root = User.objects.create_superuser(email="root@example.com", password="pass")

        self.assertTrue(root.is_staff)
        self.assertTrue(root.is_superuser)
        self.assertEqual(root.role, User.ROLE_ADMIN)


class HealthCheckTests(TestCase):
    def test_health_is_public(self):
        response = APIClient().get("/api/health/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data, {"status": "ok", "db": "ok"})
