# matching/urls.py
from django.urls import re_path
from .views import (
    StartMatchingView, CheckStateView, CancelMatchingView,
    ConfirmMatchView, CheckConfirmationStateView, QueueSnapshotView,
)

urlpatterns = [
    re_path(r"^start/?$", StartMatchingView.as_view(), name="matching-start"),
    re_path(r"^check_state/?$", CheckStateView.as_view(), name="matching-check-state"),
    re_path(r"^cancel/?$", CancelMatchingView.as_view(), name="matching-cancel"),
    re_path(r"^confirm/?$", ConfirmMatchView.as_view(), name="matching-confirm"),
    re_path(r"^check_confirmation_state/?$", CheckConfirmationStateView.as_view(),
            name="matching-check-confirmation-state"),
    re_path(r"^queue/?$", QueueSnapshotView.as_view(), name="matching-queue"),
]
