# matching/serializers.py
from rest_framework import serializers

from .users import Difficulty, MatchingUser


class DifficultiesSerializer(serializers.Serializer):
    easy = serializers.BooleanField(default=False)
    medium = serializers.BooleanField(default=False)
    hard = serializers.BooleanField(default=False)


class StartMatchingSerializer(serializers.Serializer):
    # client sends camelCase; we map progLangs -> prog_langs
    id = serializers.CharField(max_length=255)
    email = serializers.EmailField()
    difficulties = DifficultiesSerializer()
    topics = serializers.ListField(child=serializers.CharField(), allow_empty=True, default=list)
    progLangs = serializers.ListField(child=serializers.CharField(), allow_empty=True, default=list)

    def validate_difficulties(self, value):
        if not any(value.get(d.value) for d in Difficulty):
            raise serializers.ValidationError("Select at least one difficulty.")
        return value

    def to_user(self) -> MatchingUser:
        data = self.validated_data
        return MatchingUser(
            id=data["id"],
            email=data["email"],
            difficulties={d.value: bool(data["difficulties"].get(d.value)) for d in Difficulty},
            topics=list(data["topics"]),
            prog_langs=list(data["progLangs"]),
        )


class UserTokenSerializer(serializers.Serializer):
    userToken = serializers.CharField(max_length=255)


class ConfirmSerializer(UserTokenSerializer):
    accept = serializers.BooleanField(default=True)
