# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata.

from app.models.user import RecoveryCode, User  # noqa: F401
