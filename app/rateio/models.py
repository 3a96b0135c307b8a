import uuid
from django.db import models
from django.utils import timezone


class RateioClaro(models.Model):
    """Hub: one row per Claro phone line allocated to a person"""
    STATUS_ACTIVE = 'active'
    STATUS_INACTIVE = 'inactive'
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_INACTIVE, 'Inactive'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    nome = models.CharField(max_length=300, null=True, blank=True)
    numero_linha = models.CharField(max_length=32, null=True, blank=True, db_index=True,
                                    help_text="Canonical digits, no country code")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, null=True, blank=True)
    user_id = models.UUIDField(null=True, blank=True, help_text="Auth uid of the row owner")
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'rateio_claro'
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"{self.numero_linha} - {self.nome}"


class SyncOverride(models.Model):
    """
    Operator dismissal of a diff for one line.
    Only honoured while the sheet content for the line still hashes to planilha_hash.
    """
    numero_linha = models.CharField(max_length=32, primary_key=True)
    planilha_hash = models.CharField(max_length=400,
                                     help_text="'ABSENT' or 'PRESENT:<normalized name>'")
    updated_at = models.DateTimeField(default=timezone.now)
    user_id = models.UUIDField(null=True, blank=True)

    class Meta:
        db_table = 'rateio_claro_sync_overrides'
        ordering = ['numero_linha']

    def __str__(self):
        return f"{self.numero_linha}: {self.planilha_hash}"


class SyncLog(models.Model):
    """Append-only audit of every apply call"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user_id = models.UUIDField(null=True, blank=True)
    inserted = models.IntegerField(default=0)
    updated = models.IntegerField(default=0)
    inactivated = models.IntegerField(default=0)
    options = models.JSONField(default=dict, blank=True)
    checksum_planilha = models.CharField(max_length=64, blank=True,
                                         help_text="SHA256 of the canonical sheet rows")
    payload = models.JSONField(default=dict, blank=True,
                               help_text="Diff summary and sample")
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        db_table = 'rateio_sync_logs'
        ordering = ['-created_at']

    def __str__(self):
        return f"Sync {self.created_at:%Y-%m-%d %H:%M}: +{self.inserted} ~{self.updated} -{self.inactivated}"
