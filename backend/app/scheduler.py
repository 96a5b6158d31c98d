"""
Planificateur APScheduler : purge horaire des demandes de réinitialisation
de mot de passe expirées.

Les demandes expirées sont déjà refusées à la consommation ; le job évite
simplement de conserver des hash inutiles en base.
"""

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from app.database import SessionLocal

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def _purge_expired_reset_challenges() -> None:
    """Tâche planifiée : efface les jetons de réinitialisation expirés."""
    from app.services.user_store import clear_expired_reset_challenges

    db = SessionLocal()
    try:
        count = clear_expired_reset_challenges(db)
        if count:
            logger.info("%d demande(s) de réinitialisation expirée(s) supprimée(s)", count)
    except Exception as exc:
        logger.error("Erreur lors de la purge des jetons de réinitialisation : %s", exc)
    finally:
        db.close()


def start_scheduler() -> None:
    """Démarre le planificateur en arrière-plan (appelé au démarrage de l'API)."""
    scheduler.add_job(
        _purge_expired_reset_challenges,
        trigger="interval",
        hours=1,
        id="purge_expired_reset_challenges",
        replace_existing=True,
    )
    scheduler.start()
    logger.info("Scheduler démarré, purge des jetons de réinitialisation toutes les heures.")


def stop_scheduler() -> None:
    """Arrête le planificateur proprement (appelé à l'arrêt de l'API)."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler arrêté.")
