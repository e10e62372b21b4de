from rest_framework.routers import DefaultRouter

from . import views

router = DefaultRouter(trailing_slash=False)
router.register(r"store-owner/stores", views.OwnerStoreViewSet, basename="owner-stores")
router.register(r"store-owner/menu", views.OwnerMenuItemViewSet, basename="owner-menu")
router.register(r"stores", views.PublicStoreViewSet, basename="stores")
router.register(r"admin/stores", views.AdminStoreViewSet, basename="admin-stores")
router.register(r"admin/menu-items", views.AdminMenuItemViewSet, basename="admin-menu-items")

urlpatterns = router.urls
