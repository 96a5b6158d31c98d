"""
Service d'envoi d'emails SMTP.
Utilisé pour l'envoi des liens de réinitialisation du mot de passe.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from app.config import settings

logger = logging.getLogger(__name__)


def send_password_reset_email(to_email: str, reset_link: str) -> None:
    """
    Envoie le lien de réinitialisation (contenant le jeton en clair) à l'utilisateur.
    Lève une exception en cas d'échec SMTP. Le lien n'est jamais journalisé.
    """
    msg = MIMEMultipart("alternative")
    msg["From"] = settings.SMTP_FROM
    msg["To"] = to_email
    msg["Subject"] = f"{settings.APP_NAME} : réinitialisation de votre mot de passe"

    text_content = (
        "Bonjour,\n\n"
        "Une réinitialisation du mot de passe a été demandée pour votre compte.\n"
        f"Ouvrez ce lien dans l'heure pour choisir un nouveau mot de passe :\n{reset_link}\n\n"
        "Si vous n'êtes pas à l'origine de cette demande, ignorez cet email."
    )
    html_content = f"""
    <html>
      <body style="font-family: Arial, sans-serif; color: #333; max-width: 600px; margin: auto;">
        <h2 style="color: #1a73e8;">{settings.APP_NAME} : mot de passe oublié</h2>
        <p>Bonjour,</p>
        <p>Une réinitialisation du mot de passe a été demandée pour votre compte.</p>
        <p style="text-align: center; margin: 24px 0;">
          <a href="{reset_link}" style="background: #1a73e8; color: #fff; padding: 12px 20px;
             border-radius: 4px; text-decoration: none;">Choisir un nouveau mot de passe</a>
        </p>
        <p>Ce lien expire dans une heure.</p>
        <hr style="border: none; border-top: 1px solid #eee;" />
        <p style="font-size: 12px; color: #888;">
          Si vous n'êtes pas à l'origine de cette demande, ignorez cet email.
        </p>
      </body>
    </html>
    """
    msg.attach(MIMEText(text_content, "plain", "utf-8"))
    msg.attach(MIMEText(html_content, "html", "utf-8"))

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
        if settings.SMTP_USE_TLS:
            server.starttls()
        if settings.SMTP_USERNAME:
            server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
        server.send_message(msg)

    logger.info("Email de réinitialisation envoyé à %s", to_email)
