"""
MTR Devis - API Backend
Demandes de devis, devis multi-demandes, réclamations, commandes client

Démarre avec:
    uvicorn server:app --host 0.0.0.0 --port 4000 --reload
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

import config

# Configuration logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("mtr_devis")

# Créer l'app
app = FastAPI(
    title="MTR Devis",
    description="Backend devis et réclamations",
    version="1.0.0"
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ==================== IMPORT DES ROUTES ====================

from routes import auth, devis, demandes, reclamations, orders

# Routes avec préfixe /api
app.include_router(auth.router, prefix="/api")
app.include_router(devis.router, prefix="/api")
app.include_router(demandes.router, prefix="/api")
app.include_router(reclamations.router, prefix="/api")
app.include_router(orders.router, prefix="/api")

# ==================== ROUTE RACINE ====================

@app.get("/")
async def root():
    return {
        "name": "MTR Devis API",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs"
    }


# ==================== STARTUP / SHUTDOWN ====================

scheduler = None


@app.on_event("startup")
async def startup():
    global scheduler
    from email_service import email_service
    from scheduler_service import TaskScheduler
    from services.demandes import DEMANDE_COLLECTIONS

    db = config.db

    await db.users.create_index("email", unique=True)
    await db.sessions.create_index("token")
    for _, name in DEMANDE_COLLECTIONS:
        await db[name].create_index("numero", unique=True)
        await db[name].create_index("user_id")
    await db.devis.create_index("numero", unique=True)
    await db.devis.create_index("demande_id")
    await db.devis.create_index("demandes.numero")
    await db.reclamations.create_index("numero", unique=True)
    await db.client_orders.create_index([("user_id", 1), ("demande_id", 1)], unique=True)
    await db.outbox.create_index("status")
    logger.info("Index MongoDB créés")

    scheduler = TaskScheduler(db, email_service)
    scheduler.start()
    logger.info("MTR Devis démarré")


@app.on_event("shutdown")
async def shutdown():
    if scheduler:
        scheduler.stop()
    config.client.close()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=4000)
