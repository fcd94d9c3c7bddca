from django.urls import path
from .views import (
    CartLineDetailView,
    CartLinesView,
    CartView,
    CheckoutView,
    OrdersPingView,
    OrderTransitionView,
    RetrieveOrderView,
    WaitStatusView,
)

app_name = "orders"

urlpatterns = [
    path("orders/ping/", OrdersPingView.as_view(), name="ping"),
    path("cart/<str:buyer_id>/", CartView.as_view(), name="cart"),
    path("cart/<str:buyer_id>/lines/", CartLinesView.as_view(), name="cart-lines"),
    path("cart/<str:buyer_id>/lines/<str:menu_id>/", CartLineDetailView.as_view(), name="cart-line"),
    path("checkout/", CheckoutView.as_view(), name="checkout"),
    path("orders/<uuid:oid>/", RetrieveOrderView.as_view(), name="orders-detail"),
    path("orders/<uuid:oid>/cancel/", OrderTransitionView.as_view(action="cancel"), name="orders-cancel"),
    path("orders/<uuid:oid>/advance/", OrderTransitionView.as_view(action="advance"), name="orders-advance"),
    path("orders/<uuid:oid>/complete/", OrderTransitionView.as_view(action="complete"), name="orders-complete"),
    path("orders/<uuid:oid>/wait-status/", WaitStatusView.as_view(), name="orders-wait-status"),
]
