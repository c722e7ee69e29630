import logging

from rest_framework import serializers

from .models import Candidate

logger = logging.getLogger("candidates")


class CandidateSerializer(serializers.ModelSerializer):
    """
    Serializer for creating and updating Candidate instances.
    Candidate payloads are validated here before they reach the services.
    """

    class Meta:
        model = Candidate
        fields = ["id", "name", "grade", "description", "photo_url"]
        read_only_fields = ["id"]

    def validate_name(self, value):
        value = value.strip()
        if len(value) <= 1:
            logger.warning("Candidate name too short.")
            raise serializers.ValidationError("Name cannot be of 1 letter")
        return value

    def validate_grade(self, value):
        if value < 1:
            raise serializers.ValidationError("Grade must be a positive number.")
        return value

    def update(self, instance, validated_data):
        logger.info(f"Candidate updated: {instance.pk} fields={sorted(validated_data)}")
        return super().update(instance, validated_data)
