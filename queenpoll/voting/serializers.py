from rest_framework import serializers

from .models import Vote


class VoteCreateSerializer(serializers.Serializer):
    """
    Validates the shape of a vote request. Whether the candidate exists
    and whether the caller may still vote is decided by the voting service.
    """
    candidate_id = serializers.IntegerField()


class VoteSerializer(serializers.ModelSerializer):
    """
    Serializer for a vote receipt.
    """
    voter_id = serializers.IntegerField(read_only=True)
    candidate_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = Vote
        fields = ['id', 'voter_id', 'candidate_id', 'timestamp']
        read_only_fields = fields
