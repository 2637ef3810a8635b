"""
Serializers for Sales API
"""
from rest_framework import serializers

from stores.models import Store

from .models import Customer, Sale


class CustomerSerializer(serializers.ModelSerializer):
    """Serializer for Customer model"""
    store_id = serializers.PrimaryKeyRelatedField(source='store', queryset=Store.objects.all(), required=False)
    store_name = serializers.CharField(source='store.name', read_only=True)

    class Meta:
        model = Customer
        fields = [
            'id', 'store_id', 'store_name', 'floor', 'name', 'email', 'phone',
            'status', 'notes', 'created_by', 'assigned_to', 'sales_representative',
            'is_deleted', 'deleted_at', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'created_by', 'is_deleted', 'deleted_at', 'created_at', 'updated_at']
        extra_kwargs = {
            'email': {'required': False, 'allow_null': True},
            'phone': {'required': False, 'allow_null': True},
            'assigned_to': {'required': False, 'allow_null': True},
            'sales_representative': {'required': False, 'allow_null': True},
        }

    def validate(self, data):
        if self.instance is None and data.get('store') is None:
            raise serializers.ValidationError({'store_id': 'A store is required.'})

        store = data.get('store') or getattr(self.instance, 'store', None)
        floor = data.get('floor')
        if store is not None and floor is not None and floor > store.floors:
            raise serializers.ValidationError({'floor': f'{store.name} has only {store.floors} floor(s).'})
        return data


class SaleSerializer(serializers.ModelSerializer):
    """Serializer for Sale model"""
    store_id = serializers.IntegerField(read_only=True)
    customer_name = serializers.CharField(source='customer.name', read_only=True, default=None)

    class Meta:
        model = Sale
        fields = [
            'id', 'store_id', 'floor', 'customer', 'customer_name', 'amount', 'date',
            'sales_representative', 'created_by', 'created_at'
        ]
        read_only_fields = fields
