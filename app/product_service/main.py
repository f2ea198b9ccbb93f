# product_service/main.py
from fastapi import Depends, FastAPI, HTTPException
from sqlalchemy.orm import Session

from app.data.database import get_db, init_db
from app.domain.errors import GatewayError
from app.domain.schemas import ProductSnapshot
from app.repos.product_repo import ProductRepo
from app.utils.logging import get_logger

logger = get_logger(__name__)

app = FastAPI(title="Product Service")


@app.on_event("startup")
def startup():
    init_db()


@app.get("/products/{product_id}", response_model=ProductSnapshot)
def get_product(product_id: str, db: Session = Depends(get_db)):
    try:
        product = ProductRepo(db).get_product(product_id)
    except GatewayError as e:
        logger.error(f"Failed to read product {product_id}: {e}")
        raise HTTPException(status_code=503, detail="Product catalog unavailable")

    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product
