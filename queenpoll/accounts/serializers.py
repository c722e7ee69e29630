#serializer module provides functionalities for serializing & deserializing complex data into JSON
from rest_framework import serializers
from .models import User
import logging

logger = logging.getLogger('accounts')

class UserRegistrationSerializer(serializers.ModelSerializer):
    """
    serializer for creating a student account.
    """
    password = serializers.CharField(write_only=True, required=True, min_length=6, style={'input_type':'password'}) # 'style={'input_type': 'password'}' helps DRF's browsable API render this as a password input field.

    class Meta:
        model = User
        fields = ('id', 'username', 'password', 'display_name', 'grade')
        read_only_fields = ('id',)

    def create(self, validated_data):
        """
        Accounts created through the API are always students; judges are provisioned with `createjudge`.
        """
        user = User.objects.create_user(
            username = validated_data['username'],
            password = validated_data['password'],
            display_name = validated_data.get('display_name'),
            grade = validated_data.get('grade'),
            role = User.Role.STUDENT,
        )
        logger.info(f"New student registered: {user.username}")
        return user


class SessionUserSerializer(serializers.ModelSerializer):
    """
    The caller's identity as exposed to clients.
    """
    class Meta:
        model = User
        fields = ('id', 'username', 'role', 'display_name', 'has_voted', 'grade')
        read_only_fields = fields
