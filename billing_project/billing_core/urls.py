from django.urls import path

from . import views

app_name = "billing_core"

urlpatterns = [
    # Documents
    path("invoices/", views.invoice_collection, name="invoice-list"),
    path("invoices/<int:pk>/", views.invoice_detail, name="invoice-detail"),
    path("invoices/<int:pk>/send/", views.send_invoice_view, name="invoice-send"),
    path("invoices/<int:pk>/payments/", views.invoice_payments, name="invoice-payments"),
    path("invoices/<int:pk>/payments/<int:payment_id>/", views.invoice_payment_detail,
         name="invoice-payment-detail"),
    path("quotations/", views.quotation_collection, name="quotation-list"),
    path("quotations/<int:pk>/", views.quotation_detail, name="quotation-detail"),
    path("quotations/<int:pk>/send/", views.send_quotation_view, name="quotation-send"),
    path("quotations/<int:pk>/convert/", views.convert_quotation_view, name="quotation-convert"),

    # Share links
    path("share-links/", views.share_link_collection, name="share-link-create"),
    path("share-links/<str:token>/deactivate/", views.share_link_deactivate,
         name="share-link-deactivate"),
    path("public/share/<str:token>/", views.public_share_open, name="public-share"),
    path("public/share/<str:token>/verify/", views.public_share_verify, name="public-share-verify"),
    path("public/share/<str:token>/acknowledge/", views.public_acknowledge,
         name="public-share-acknowledge"),
    path("public/share/<str:token>/accept/", views.public_accept, name="public-share-accept"),
    path("public/share/<str:token>/reject/", views.public_reject, name="public-share-reject"),
]
