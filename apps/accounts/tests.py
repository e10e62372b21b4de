from django.test import TestCase
from rest_framework.test import APIClient

from common.testing import client_for, make_user

from .models import AccountStatus, AuditLog, Role, User

PASSWORD = "Passw0rd!x"


class RegisterLoginTests(TestCase):
    def setUp(self):
        self.client = APIClient()

    def register(self, **extra):
        payload = {"email": "Asha@Example.com", "name": "Asha", "password": PASSWORD, "password2": PASSWORD}
        payload.update(extra)
        return self.client.post("/api/auth/register", payload, format="json")

    def test_register_issues_tokens(self):
        res = self.register()
        self.assertEqual(res.status_code, 201)
        body = res.json()
        self.assertTrue(body["success"])
        self.assertIn("access", body["data"])
        self.assertEqual(body["data"]["user"]["email"], "asha@example.com")
        self.assertEqual(body["data"]["user"]["role"], Role.CUSTOMER)
        self.assertTrue(AuditLog.objects.filter(action="user.register").exists())

    def test_store_owner_can_self_register(self):
        res = self.register(role=Role.STORE_OWNER)
        self.assertEqual(res.json()["data"]["user"]["role"], Role.STORE_OWNER)

    def test_admin_role_is_not_self_service(self):
        self.assertEqual(self.register(role=Role.ADMIN).status_code, 400)

    def test_duplicate_email(self):
        self.register()
        res = self.register(email="asha@example.com")
        self.assertEqual(res.status_code, 400)
        self.assertFalse(res.json()["success"])

    def test_password_mismatch(self):
        self.assertEqual(self.register(password2="different1!").status_code, 400)

    def test_login(self):
        self.register()
        res = self.client.post("/api/auth/login", {"email": "asha@example.com", "password": PASSWORD}, format="json")
        self.assertEqual(res.status_code, 200)
        self.assertIn("refresh", res.json()["data"])

        res = self.client.post("/api/auth/login", {"email": "asha@example.com", "password": "wrong"}, format="json")
        self.assertEqual(res.status_code, 400)


class ProfileTests(TestCase):
    def test_me_requires_auth(self):
        self.assertEqual(APIClient().get("/api/auth/me").status_code, 401)

    def test_update_address_book(self):
        user = make_user()
        res = client_for(user).patch("/api/auth/me", {
            "name": "New Name",
            "addresses": [{"label": "Work", "street": "5 Residency Rd", "city": "Bengaluru", "pincode": "560025"}],
        }, format="json")
        self.assertEqual(res.status_code, 200)
        user.refresh_from_db()
        self.assertEqual(user.name, "New Name")
        self.assertEqual(user.addresses[0]["country"], "India")

    def test_invalid_address_label(self):
        res = client_for(make_user()).patch("/api/auth/me", {
            "addresses": [{"label": "Moon", "street": "x", "city": "y", "pincode": "1"}],
        }, format="json")
        self.assertEqual(res.status_code, 400)


class AdminUserTests(TestCase):
    def setUp(self):
        self.admin = make_user(Role.ADMIN)
        self.customer = make_user()

    def test_suspend_and_reactivate(self):
        client = client_for(self.admin)
        res = client.post(f"/api/admin/users/{self.customer.pk}/suspend", {"reason": "chargebacks"}, format="json")
        self.assertEqual(res.status_code, 200)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.status, AccountStatus.SUSPENDED)
        self.assertEqual(self.customer.suspended_reason, "chargebacks")

        client.post(f"/api/admin/users/{self.customer.pk}/reactivate")
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.status, AccountStatus.ACTIVE)
        self.assertEqual(AuditLog.objects.filter(actor_id=self.admin.pk).count(), 2)

    def test_filter_by_role(self):
        res = client_for(self.admin).get(f"/api/admin/users?role={Role.CUSTOMER}")
        self.assertEqual(res.json()["pagination"]["total"], User.objects.filter(role=Role.CUSTOMER).count())

    def test_customer_cannot_manage_users(self):
        self.assertEqual(client_for(self.customer).get("/api/admin/users").status_code, 403)
