"""
Email adapter for the account gateway.

The default implementation uses SMTP, reading credentials from Settings.
"""

from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
import smtplib
import ssl

from .config import Settings, get_settings


def send_email(subject: str, to_email: str, html_body: str, text_body: str | None = None, settings: Settings | None = None) -> bool:
    """
    Envia e-mails utilizando as credenciais SMTP definidas via env.
    Quando configurações não estiverem disponíveis, retorna False sem enviar.
    """
    settings = settings or get_settings()
    if not (
        settings.smtp_host
        and settings.smtp_user
        and settings.smtp_password
        and settings.smtp_from
        and settings.smtp_port
    ):
        print("[email] Configuracao SMTP ausente; ignorando envio.")
        return False
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = settings.smtp_from
    msg["To"] = to_email
    plain = text_body or html_body
    msg.attach(MIMEText(plain, "plain", "utf-8"))
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    port = settings.smtp_port or 465
    try:
        if port == 465:
            context = ssl.create_default_context()
            with smtplib.SMTP_SSL(settings.smtp_host, port, context=context) as server:
                server.login(settings.smtp_user, settings.smtp_password)
                server.sendmail(settings.smtp_from, [to_email], msg.as_string())
        else:
            with smtplib.SMTP(settings.smtp_host, port) as server:
                server.ehlo()
                server.starttls(context=ssl.create_default_context())
                server.login(settings.smtp_user, settings.smtp_password)
                server.sendmail(settings.smtp_from, [to_email], msg.as_string())
        return True
    except (smtplib.SMTPException, OSError) as exc:
        print(f"[email] Falha ao enviar para {to_email}: {exc}")
        return False


def send_verification_code(email: str, code: str, settings: Settings | None = None) -> bool:
    """Deliver the registration code; returns False when nothing was sent."""
    html_body = f"""
    <p>¡Hola!</p>
    <p>Tu código de verificación es:</p>
    <p style="font-size:24px;font-weight:bold;letter-spacing:4px;">{code}</p>
    <p>Si no solicitaste este registro, ignora este mensaje.</p>
    """
    return send_email(
        "Tu código de verificación",
        email,
        html_body,
        f"Tu código de verificación es: {code}",
        settings=settings,
    )
