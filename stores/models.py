from django.db import models


class Store(models.Model):
    """A physical showroom. Floors are numbered from 1 (ground floor)."""
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('inactive', 'Inactive'),
        ('maintenance', 'Maintenance'),
    ]

    name = models.CharField(max_length=255)
    location = models.CharField(max_length=255, blank=True, default='')
    floors = models.PositiveSmallIntegerField(default=1)
    village = models.CharField(max_length=255, blank=True, null=True)
    address = models.TextField(blank=True, null=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'stores'
        ordering = ['id']

    def __str__(self):
        return f"{self.name} - {self.location}" if self.location else self.name
