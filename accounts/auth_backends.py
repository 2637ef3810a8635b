from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend


class EmailBackend(ModelBackend):
    """Authenticate CRM users by email, case-insensitively."""

    def authenticate(self, request, username=None, email=None, password=None, **kwargs):
        UserModel = get_user_model()
        email = (email or username or kwargs.get(UserModel.EMAIL_FIELD) or '').strip()

        if not email or password is None:
            return None

        user = UserModel.objects.filter(email__iexact=email).first()
        if user is None:
            # Run the hasher once to keep timing similar for unknown emails.
            UserModel().set_password(password)
            return None

        if user.check_password(password) and self.user_can_authenticate(user):
            return user
        return None
