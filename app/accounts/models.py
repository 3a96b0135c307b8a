import uuid
from django.db import models


class UserProfile(models.Model):
    """
    Dashboard user profile, joined to the auth provider by auth_uid.
    Drives role and module entitlement checks; never written by the sync.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    auth_uid = models.UUIDField(unique=True, db_index=True,
                                help_text="Identity id issued by the auth provider")
    nome = models.CharField(max_length=200, blank=True)
    email = models.EmailField(blank=True)
    role = models.CharField(max_length=50, blank=True,
                            help_text="e.g. admin, administrador, financeiro, usuario")
    modules = models.JSONField(default=list, blank=True,
                               help_text="Module keys this user may access")
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = 'users'
        ordering = ['nome']

    def __str__(self):
        return self.email or str(self.auth_uid)
