"""
URL configuration for sales app.
"""
from django.urls import path
from sales import views

urlpatterns = [
    path('public/sales/', views.PublicSaleSubmissionView.as_view(), name='public-sale-submit'),
    path('tiers/', views.TicketTierListView.as_view(), name='tier-list'),
    path('tiers/<uuid:tier_id>/', views.TicketTierDetailView.as_view(), name='tier-detail'),
    path('sales/', views.AdminSaleListView.as_view(), name='sale-list'),
    path('sales/<str:sale_id>/approve/', views.ApproveSaleView.as_view(), name='sale-approve'),
    path('sales/<str:sale_id>/reject/', views.RejectSaleView.as_view(), name='sale-reject'),
    path('sales/<str:sale_id>/webhook/replay/', views.ReplayWebhookView.as_view(), name='sale-webhook-replay'),
    path('partner/sales/', views.PartnerSaleListView.as_view(), name='partner-sale-list'),
    path('partner/sales/<str:sale_id>/', views.PartnerSaleDetailView.as_view(), name='partner-sale-detail'),
]
