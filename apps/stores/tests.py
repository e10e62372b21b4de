from decimal import Decimal

from django.test import TestCase

from apps.accounts.models import AuditLog, Role
from common.exceptions import Conflict, Forbidden, InvalidRequest, ResourceNotFound
from common.principal import Principal
from common.testing import client_for, make_item, make_store, make_user

from . import services
from .models import MenuCategory, StoreStatus

STORE_PAYLOAD = {
    "store_name": "Dosa Corner",
    "address": "4 Church St",
    "city": "Bengaluru",
    "phone": "9876500000",
    "license_number": "FSSAI-0001",
    "license_type": "FSSAI",
}


class StoreLifecycleTests(TestCase):
    def setUp(self):
        self.owner = make_user(Role.STORE_OWNER)
        self.actor = Principal.from_user(self.owner)
        self.admin = Principal.from_user(make_user(Role.ADMIN))

    def test_draft_submit_approve(self):
        store = services.create_store(actor=self.actor, **STORE_PAYLOAD)
        self.assertEqual(store.status, StoreStatus.DRAFT)
        store = services.submit_store_for_verification(actor=self.actor, store_id=store.pk)
        self.assertIn(store, services.pending_stores())

        store = services.approve_store(actor=self.admin, store_id=store.pk, notes="Docs ok")
        self.assertEqual(store.status, StoreStatus.ACTIVE)
        self.assertTrue(store.is_verified)
        self.assertIn(store, services.public_stores())

    def test_cannot_resubmit_active_store(self):
        store = make_store(owner=self.owner)
        with self.assertRaises(Conflict):
            services.submit_store_for_verification(actor=self.actor, store_id=store.pk)

    def test_rejected_store_can_resubmit(self):
        store = services.create_store(actor=self.actor, **STORE_PAYLOAD)
        services.reject_store(actor=self.admin, store_id=store.pk, reason="Blurry license")
        store = services.submit_store_for_verification(actor=self.actor, store_id=store.pk)
        self.assertEqual(store.rejection_reason, "")

    def test_license_number_is_unique(self):
        services.create_store(actor=self.actor, **STORE_PAYLOAD)
        other = Principal.from_user(make_user(Role.STORE_OWNER))
        with self.assertRaisesMessage(Conflict, "License number already exists"):
            services.create_store(actor=other, **STORE_PAYLOAD)

    def test_customers_cannot_create_stores(self):
        with self.assertRaises(Forbidden):
            services.create_store(actor=Principal.from_user(make_user()), **STORE_PAYLOAD)

    def test_other_owner_sees_not_found(self):
        store = make_store(owner=self.owner)
        with self.assertRaises(ResourceNotFound):
            services.get_owned_store(Principal.from_user(make_user(Role.STORE_OWNER)), store.pk)

    def test_suspended_store_leaves_catalog(self):
        store = make_store(owner=self.owner)
        services.suspend_store(actor=self.admin, store_id=store.pk, reason="Hygiene")
        self.assertNotIn(store, services.public_stores())
        self.assertTrue(AuditLog.objects.filter(action="store.suspend").exists())

    def test_commission_override(self):
        store = make_store(owner=self.owner)
        self.assertEqual(store.effective_commission_rate(), Decimal("10"))
        store = services.update_store_commission(actor=self.admin, store_id=store.pk, commission_rate=Decimal("12.50"))
        self.assertEqual(store.effective_commission_rate(), Decimal("12.50"))

    def test_metadata_needs_a_field(self):
        store = make_store(owner=self.owner)
        with self.assertRaises(InvalidRequest):
            services.update_store_metadata(actor=self.admin, store_id=store.pk)


class MenuTests(TestCase):
    def setUp(self):
        self.store = make_store()
        self.actor = Principal.from_user(self.store.owner)

    def test_duplicate_name_is_case_insensitive(self):
        services.add_menu_item(actor=self.actor, store_id=self.store.pk, name="Masala Dosa", price=Decimal("90"))
        with self.assertRaises(Conflict):
            services.add_menu_item(actor=self.actor, store_id=self.store.pk, name=" masala dosa ", price=Decimal("95"))

    def test_stock_operations(self):
        item = make_item(self.store)
        item = services.update_menu_item_stock(actor=self.actor, menu_item_id=item.pk, quantity=150, operation="decrement")
        self.assertEqual(item.stock_quantity, 0)
        self.assertFalse(item.in_stock)
        item = services.update_menu_item_stock(actor=self.actor, menu_item_id=item.pk, quantity=5, operation="increment")
        self.assertTrue(item.in_stock)

    def test_foreign_owner_cannot_edit(self):
        item = make_item(self.store)
        with self.assertRaises(Forbidden):
            services.toggle_menu_item_availability(actor=Principal.from_user(make_user(Role.STORE_OWNER)), menu_item_id=item.pk)

    def test_admin_disable_hides_item(self):
        item = make_item(self.store)
        services.disable_menu_item(actor=Principal.from_user(make_user(Role.ADMIN)), menu_item_id=item.pk, reason="Mislabelled")
        self.assertNotIn(item, services.store_menu(self.store))

    def test_menu_grouping(self):
        make_item(self.store, category=MenuCategory.STARTERS)
        make_item(self.store, category=MenuCategory.STARTERS)
        make_item(self.store, category=MenuCategory.DESSERTS)
        grouped = services.group_menu_by_category(services.store_menu(self.store))
        self.assertEqual(len(grouped[MenuCategory.STARTERS]), 2)
        self.assertEqual(len(grouped[MenuCategory.DESSERTS]), 1)

    def test_popular_items_rank_by_sales(self):
        make_item(self.store, name="Vada", times_ordered=3)
        make_item(self.store, name="Dosa", times_ordered=12)
        make_item(self.store, name="Upma")
        make_item(self.store, name="Pongal", times_ordered=20, is_available=False)
        names = [item.name for item in services.popular_items(self.store)]
        self.assertEqual(names, ["Dosa", "Vada"])
        self.assertEqual(len(services.popular_items(self.store, limit=1)), 1)


class StoreApiTests(TestCase):
    def test_owner_creates_draft(self):
        owner = make_user(Role.STORE_OWNER)
        res = client_for(owner).post("/api/store-owner/stores", STORE_PAYLOAD, format="json")
        self.assertEqual(res.status_code, 201)
        self.assertEqual(res.data["data"]["status"], StoreStatus.DRAFT)

    def test_public_catalog_and_menu(self):
        store = make_store()
        make_item(store, name="Idli")
        make_store(status=StoreStatus.DRAFT)
        res = self.client.get("/api/stores")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["pagination"]["total"], 1)

        res = self.client.get(f"/api/stores/{store.pk}/menu")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["data"]["menu"][0]["items"][0]["name"], "Idli")

    def test_admin_pending_queue(self):
        make_store(status=StoreStatus.SUBMITTED)
        res = client_for(make_user(Role.ADMIN)).get("/api/admin/stores/pending")
        self.assertEqual(res.json()["pagination"]["total"], 1)

    def test_customer_cannot_approve(self):
        store = make_store(status=StoreStatus.SUBMITTED)
        res = client_for(make_user()).post(f"/api/admin/stores/{store.pk}/approve", {}, format="json")
        self.assertEqual(res.status_code, 403)

    def test_public_popular_items(self):
        store = make_store()
        make_item(store, name="Idli", times_ordered=4)
        make_item(store, name="Dosa", times_ordered=9)
        res = self.client.get(f"/api/stores/{store.pk}/popular", {"limit": 5})
        self.assertEqual(res.status_code, 200)
        data = res.json()["data"]
        self.assertEqual([item["name"] for item in data["items"]], ["Dosa", "Idli"])
        self.assertEqual(data["count"], 2)

        res = self.client.get(f"/api/stores/{store.pk}/popular", {"limit": 0})
        self.assertEqual(res.status_code, 400)
