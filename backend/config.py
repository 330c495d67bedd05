"""
Configuration et utilitaires partagés
"""

import math
import os
from datetime import datetime, timezone
from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
from pathlib import Path

# Charger .env
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# MongoDB
MONGO_URL = os.environ.get('MONGO_URL', 'mongodb://localhost:27017')
DB_NAME = os.environ.get('DB_NAME', 'mtr_devis')

# Connexion paresseuse: utilisée uniquement par le câblage HTTP (server.py).
# Les services reçoivent leur handle db à la construction.
client = AsyncIOMotorClient(MONGO_URL)
db = client[DB_NAME]

# Base publique du backend (liens PDF dans les emails)
PUBLIC_BACKEND_URL = os.environ.get('PUBLIC_BACKEND_URL', 'http://localhost:4000').rstrip('/')

CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')

# Fiscalité devis
FODEC_PERCENT = float(os.environ.get('FODEC_PERCENT', '1'))
TIMBRE_FISCAL = float(os.environ.get('TIMBRE_FISCAL', '0'))
DEFAULT_TVA_PERCENT = float(os.environ.get('DEFAULT_TVA_PERCENT', '19'))

# Liste "demandes sans devis"
UNCONVERTED_LIMIT_DEFAULT = 500
UNCONVERTED_LIMIT_MAX = int(os.environ.get('UNCONVERTED_LIMIT_MAX', '5000'))

# Pièces jointes (métadonnées)
MAX_ATTACHMENTS = 10
MAX_ATTACHMENT_SIZE = 5 * 1024 * 1024  # 5 Mo

# Outbox (emails post-commit)
OUTBOX_INTERVAL_SECONDS = int(os.environ.get('OUTBOX_INTERVAL_SECONDS', '60'))
OUTBOX_MAX_ATTEMPTS = int(os.environ.get('OUTBOX_MAX_ATTEMPTS', '3'))


# ==================== HELPERS ====================

def now_iso() -> str:
    """Retourne la date/heure actuelle en ISO"""
    return datetime.now(timezone.utc).isoformat()

def current_year() -> int:
    """Année courante (portée de numérotation)"""
    return datetime.now(timezone.utc).year

def to_num(value) -> float:
    """
    Convertit une saisie en nombre fini.
    Accepte les nombres et les chaînes au format "12,5" (virgule décimale).
    Chaîne vide / None → 0. Lève ValueError si la valeur n'est pas numérique,
    ou si elle vaut nan / inf (y compris par dépassement, "1e400").
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        raise ValueError(f"Valeur numérique invalide: {value}")
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace(" ", "").replace(",", ".")
        if not text:
            return 0.0
        number = float(text)
    if not math.isfinite(number):
        raise ValueError(f"Valeur numérique non finie: {value}")
    return number
