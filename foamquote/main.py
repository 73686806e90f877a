from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .database import engine, Base
from .routers import pricebook, materials, quotes

# Create tables (pricebook snapshots, quote facts)
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="Foam Quote Pricing Core",
    description="Pricebook validation, material selection and quote pricing",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(pricebook.router, prefix="/api")
app.include_router(materials.router, prefix="/api")
app.include_router(quotes.router, prefix="/api")


@app.get("/health")
def health():
    return {"status": "ok", "app": "foamquote"}
