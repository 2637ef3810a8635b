import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from stores.models import Store


class Customer(models.Model):
    """Showroom customer. Visibility follows the store and the three ownership markers."""
    STATUS_CHOICES = [
        ('lead', 'Lead'),
        ('active', 'Active'),
        ('inactive', 'Inactive'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    store = models.ForeignKey(Store, on_delete=models.PROTECT, related_name='customers')
    floor = models.PositiveSmallIntegerField(null=True, blank=True)
    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True, null=True)
    phone = models.CharField(max_length=50, blank=True, null=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='lead')
    notes = models.TextField(blank=True, default='')

    # Ownership markers
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='created_customers'
    )
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='assigned_customers'
    )
    sales_representative = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='represented_customers'
    )

    # Trash
    is_deleted = models.BooleanField(default=False)
    deleted_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'customers'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['store', 'floor'], name='customers_store_i_4b1e2a_idx'),
            models.Index(fields=['assigned_to'], name='customers_assigne_8c3d5f_idx'),
            models.Index(fields=['sales_representative'], name='customers_sales_r_2e9a71_idx'),
            models.Index(fields=['is_deleted'], name='customers_is_dele_6f0c84_idx'),
        ]

    def __str__(self):
        return self.name

    def soft_delete(self):
        self.is_deleted = True
        self.deleted_at = timezone.now()
        self.save(update_fields=['is_deleted', 'deleted_at', 'updated_at'])

    def restore(self):
        self.is_deleted = False
        self.deleted_at = None
        self.save(update_fields=['is_deleted', 'deleted_at', 'updated_at'])


class Visit(models.Model):
    """Walk-in recorded on a store floor"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    store = models.ForeignKey(Store, on_delete=models.CASCADE, related_name='visits')
    floor = models.PositiveSmallIntegerField()
    customer = models.ForeignKey(Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name='visits')
    date = models.DateField(default=timezone.localdate)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='recorded_visits'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'visits'
        ordering = ['-date', '-created_at']
        indexes = [
            models.Index(fields=['floor', 'date'], name='visits_floor_d1e4a7_idx'),
        ]


class Sale(models.Model):
    """Closed sale attributed to a floor and a sales representative"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    store = models.ForeignKey(Store, on_delete=models.PROTECT, related_name='sales')
    floor = models.PositiveSmallIntegerField()
    customer = models.ForeignKey(Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name='sales')
    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))],
    )
    date = models.DateField(default=timezone.localdate)
    sales_representative = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='sales'
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='recorded_sales'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'sales'
        ordering = ['-date', '-created_at']
        indexes = [
            models.Index(fields=['floor', 'date'], name='sales_floor_5a8b2c_idx'),
            models.Index(fields=['store', 'date'], name='sales_store_i_9f3e61_idx'),
        ]

    def __str__(self):
        return f"Sale {self.id} - {self.amount}"
