from rest_framework import serializers

from .models import Store


class StoreSerializer(serializers.ModelSerializer):
    class Meta:
        model = Store
        fields = [
            'id', 'name', 'location', 'floors', 'village', 'address',
            'status', 'is_active', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']


class SelectStoreSerializer(serializers.Serializer):
    store_id = serializers.IntegerField(min_value=1)

    def validate_store_id(self, value):
        if not Store.objects.filter(pk=value).exists():
            raise serializers.ValidationError('Store not found.')
        return value
