from __future__ import annotations

from django.contrib.auth import get_user_model
from rest_framework import generics, permissions

from .serializers import ProfileSerializer, SignupSerializer

User = get_user_model()


class SignupView(generics.CreateAPIView):
    """Create a rider account; the signup miles bonus is granted on save."""

    queryset = User.objects.none()
    serializer_class = SignupSerializer
    permission_classes = [permissions.AllowAny]
    authentication_classes = []


class MeView(generics.RetrieveUpdateAPIView):
    """The signed-in rider's profile, miles balance and shareable referral code."""

    serializer_class = ProfileSerializer
    permission_classes = [permissions.IsAuthenticated]
    http_method_names = ["get", "patch", "head", "options"]

    def get_object(self):
        return self.request.user
