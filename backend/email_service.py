"""
Service d'emails SendGrid pour MTR Devis
- Devis envoyé au client (lien PDF)
- Nouvelle demande / réclamation / commande → admin
"""

import os
import logging
from typing import Optional, List
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, Email, To, Cc, Content, ReplyTo

from config import PUBLIC_BACKEND_URL

logger = logging.getLogger("email_service")

# Configuration
SENDGRID_API_KEY = os.environ.get('SENDGRID_API_KEY', '')
ADMIN_EMAIL = os.environ.get('ADMIN_EMAIL', 'devis@mtr.tn')
SENDER_EMAIL = os.environ.get('SENDER_EMAIL', 'no-reply@mtr.tn')
SENDER_NAME = "MTR – Manufacture Tunisienne des ressorts"

BRAND_PRIMARY = "#002147"
BAND_BG = "#EEF3FA"
PAGE_BG = "#F5F7FB"


def devis_pdf_url(numero: str) -> str:
    return f"{PUBLIC_BACKEND_URL}/files/devis/{numero}.pdf"


def _layout(title: str, body_html: str) -> str:
    return f"""
        <!DOCTYPE html>
        <html>
        <head><meta charset="utf-8" /><title>{title}</title></head>
        <body style="margin:0;background:{PAGE_BG};font-family:Arial,sans-serif;color:#111827;">
            <div style="background:{BAND_BG};color:{BRAND_PRIMARY};padding:16px 20px;font-weight:800;font-size:14px;text-align:center;">
                {SENDER_NAME}
            </div>
            <div style="max-width:680px;margin:24px auto;background:#ffffff;border:1px solid #e5e7eb;border-radius:12px;">
                <div style="padding:24px;">
                    <h1 style="margin:0 0 12px 0;font-size:18px;color:{BRAND_PRIMARY};">{title}</h1>
                    {body_html}
                </div>
            </div>
        </body>
        </html>
        """


def _details(rows: dict) -> str:
    items = "".join(
        f"<li><strong>{label}&nbsp;:</strong> {value}</li>"
        for label, value in rows.items() if value not in (None, "")
    )
    return f'<ul style="margin:0 0 16px 20px;padding:0;">{items}</ul>'


class EmailService:
    """Service centralisé pour l'envoi d'emails"""

    def __init__(self, api_key: str = SENDGRID_API_KEY, sender: str = SENDER_EMAIL, admin: str = ADMIN_EMAIL):
        self.api_key = api_key
        self.sender = sender
        self.admin_recipient = admin

    def _send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        cc: Optional[List[str]] = None,
        reply_to: Optional[str] = None,
    ) -> bool:
        """Envoie un email via SendGrid"""
        if not self.api_key:
            logger.error("SENDGRID_API_KEY non configurée")
            return False

        try:
            message = Mail(
                from_email=Email(self.sender, SENDER_NAME),
                to_emails=To(to_email),
                subject=subject,
                html_content=Content("text/html", html_content)
            )
            for address in cc or []:
                message.add_cc(Cc(address))
            if reply_to:
                message.reply_to = ReplyTo(reply_to)

            sg = SendGridAPIClient(self.api_key)
            response = sg.send(message)

            if response.status_code in [200, 202]:
                logger.info(f"Email envoyé à {to_email}: {subject}")
                return True
            else:
                logger.error(f"Erreur envoi email: {response.status_code}")
                return False

        except Exception as e:
            logger.error(f"Exception envoi email: {str(e)}")
            return False

    # ==================== DEVIS ====================

    def send_devis_to_client(self, devis: dict) -> bool:
        client = devis.get("client") or {}
        if not client.get("email"):
            logger.warning(f"Devis {devis.get('numero')}: client sans email, envoi ignoré")
            return True

        numero = devis["numero"]
        totaux = devis.get("totaux") or {}
        subject = f"Votre devis {numero}"
        body = f"""
            <p style="margin:0 0 12px 0;">Bonjour {client.get('nom') or ''},</p>
            <p style="margin:0 0 16px 0;">Veuillez trouver ci-dessous votre devis {numero}.</p>
            {_details({
                "N° Devis": numero,
                "Demande(s)": ", ".join(d.get("numero", "") for d in devis.get("demandes") or []),
                "Total TTC": f"{totaux.get('mttc', 0):.3f}",
                "PDF": f'<a href="{devis_pdf_url(numero)}" style="color:{BRAND_PRIMARY};">{devis_pdf_url(numero)}</a>',
            })}
            <p style="margin:16px 0 0 0;">Cordialement.</p>
        """
        return self._send_email(client["email"], subject, _layout(subject, body))

    # ==================== NOTIFICATIONS ADMIN ====================

    def send_new_demande(self, demande: dict, user: dict) -> bool:
        full_name = " ".join(filter(None, [user.get("prenom"), user.get("nom")])) or "Client"
        subject = f"{full_name} - {demande['numero']}"
        documents = ", ".join(
            d.get("filename", "") for d in demande.get("documents") or []
        ) or "(aucun document client)"
        body = f"""
            <p style="margin:0 0 16px 0;">Nouvelle demande de devis – {demande.get('type')}</p>
            {_details({
                "Numéro": demande["numero"],
                "Date": demande.get("created_at"),
                "Nom": full_name,
                "Email": user.get("email") or "-",
                "Téléphone": user.get("num_tel") or "-",
                "Adresse": user.get("adresse") or "-",
                "Documents client": documents,
            })}
        """
        return self._send_email(
            self.admin_recipient, subject, _layout(subject, body),
            reply_to=user.get("email") or None,
        )

    def send_new_reclamation(self, rec: dict, user: dict) -> bool:
        full_name = " ".join(filter(None, [user.get("prenom"), user.get("nom")])) or "Client"
        subject = f"Réclamation {rec['numero']} - {full_name}"
        commande = rec.get("commande") or {}
        body = _details({
            "Numéro": rec["numero"],
            "Document": f"{commande.get('type_doc')} {commande.get('numero')}",
            "Nature": rec.get("nature"),
            "Attente": rec.get("attente"),
            "Description": rec.get("description"),
            "Email": user.get("email") or "-",
        })
        return self._send_email(
            self.admin_recipient, subject, _layout(subject, body),
            reply_to=user.get("email") or None,
        )

    def send_order_confirmed(self, order: dict, user: dict) -> bool:
        devis_numero = order.get("devis_numero")
        reference = f"Devis {devis_numero}" if devis_numero else f"Demande {order.get('demande_numero')}"
        subject = f"Commande confirmée – {reference}"
        client_display = " ".join(filter(None, [user.get("prenom"), user.get("nom")])) or user.get("email") or "Client"
        body = f"""
            <p style="margin:0 0 16px 0;">Vous avez reçu une nouvelle commande&nbsp;:</p>
            {_details({
                "Client": client_display,
                "Email": user.get("email") or "-",
                "Téléphone": user.get("num_tel") or "-",
                "Type": order.get("demande_type"),
                "Note": order.get("note"),
                "N° Demande": order.get("demande_numero"),
                "N° Devis": devis_numero,
                "Lien PDF devis": devis_pdf_url(devis_numero) if devis_numero else None,
            })}
        """
        cc = [user["email"]] if user.get("email") else None
        return self._send_email(
            self.admin_recipient, subject, _layout(subject, body),
            cc=cc, reply_to=user.get("email") or None,
        )


# Instance globale
email_service = EmailService()
