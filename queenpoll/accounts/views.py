import logging

from rest_framework import generics, permissions, status
from rest_framework.authtoken.models import Token
from rest_framework.authtoken.views import ObtainAuthToken
from rest_framework.response import Response
from rest_framework.views import APIView

from .permissions import IsAnonymousUser
from .serializers import SessionUserSerializer, UserRegistrationSerializer

logger = logging.getLogger("accounts")


class LoginView(ObtainAuthToken):
    """
    Extends DRF's `ObtainAuthToken` to return the session user along with the token.
    """

    def post(self, request, *args, **kwargs):
        logger.info("Authentication attempt for user: %s", request.data.get("username"))

        serializer = self.serializer_class(
            data=request.data, context={"request": request}
        )
        # invalid credentials raise a ValidationError, rendered as a 400 by DRF
        serializer.is_valid(raise_exception=True)
        user = serializer.validated_data["user"]

        token, created = Token.objects.get_or_create(user=user)
        if created:
            logger.info("New token created for user: %s", user.username)
        else:
            logger.info("Existing token returned for user: %s", user.username)

        return Response(
            {"token": token.key, "user": SessionUserSerializer(user).data}
        )


class LogoutView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        deleted, _ = Token.objects.filter(user=request.user).delete()
        logger.info("User logged out: %s (tokens removed: %s)", request.user.username, deleted)
        return Response(
            {"status": "success", "message": "Logged out successfully"},
            status=status.HTTP_200_OK,
        )


class SessionView(generics.RetrieveAPIView):
    """
    API endpoint returning the authenticated caller.
    """

    serializer_class = SessionUserSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_object(self):
        return self.request.user


class UserRegistrationView(generics.CreateAPIView):
    """
    API endpoint for creating new student accounts.
    """

    serializer_class = UserRegistrationSerializer
    # Only callers without a session may register
    permission_classes = [IsAnonymousUser]

    def create(self, request, *args, **kwargs):
        logger.info("User registration attempt: %s", request.data.get("username"))
        try:
            response = super().create(request, *args, **kwargs)
        except Exception as e:
            logger.error(
                "User registration failed for %s. Error: %s",
                request.data.get("username"),
                str(e),
            )
            raise
        logger.info("User registered sucessfully -> %s", request.data.get("username"))
        return response
