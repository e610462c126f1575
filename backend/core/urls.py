from django.urls import path, include

urlpatterns = [
    path("matching/", include("matching.urls")),
]
