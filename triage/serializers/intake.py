import bleach
from django.conf import settings
from rest_framework import serializers


class ReportUploadSerializer(serializers.Serializer):
    hospitalId = serializers.CharField(max_length=50)
    image = serializers.CharField(trim_whitespace=True)

    def validate_image(self, v):
        if len(v) < settings.UPLOAD_MIN_CHARS:
            raise serializers.ValidationError('Invalid image data format')
        # base64 inflates binary by 4/3
        if len(v) * 3 / 4 > settings.UPLOAD_MAX_MB * 1024 * 1024:
            raise serializers.ValidationError('Image too large')
        return v


class SymptomsSubmitSerializer(serializers.Serializer):
    hospitalId = serializers.CharField(max_length=50)
    symptoms = serializers.CharField(max_length=4000)

    def validate_symptoms(self, v):
        v = bleach.clean((v or '').strip(), strip=True)
        if len(v) < 3:
            raise serializers.ValidationError('Please describe your symptoms')
        return v


class CompleteSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255)
