from django.urls import path

from . import views

app_name = "portalman"

urlpatterns = [
    path(
        "marketplace/wholesaler/<str:wholesaler_id>",
        views.WholesalerProfileView.as_view(),
        name="wholesaler-profile",
    ),
    path(
        "customer-auth/check/<str:wholesaler_id>",
        views.SessionCheckView.as_view(),
        name="session-check",
    ),
    path("customer-auth/logout", views.LogoutView.as_view(), name="logout"),
    path("customer-auth/verify", views.PhoneMatchView.as_view(), name="phone-match"),
    path("customer-auth/request-sms", views.RequestSmsView.as_view(), name="request-sms"),
    path("customer-auth/verify-sms", views.VerifySmsView.as_view(), name="verify-sms"),
    path(
        "customer-email-verification/send",
        views.SendEmailCodeView.as_view(),
        name="email-send",
    ),
    path(
        "customer-email-verification/verify",
        views.VerifyEmailCodeView.as_view(),
        name="email-verify",
    ),
    path(
        "customer/request-wholesaler-access",
        views.RequestAccessView.as_view(),
        name="request-access",
    ),
]
