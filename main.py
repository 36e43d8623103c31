import io
import logging

from fastapi import Depends, FastAPI, File, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError
from pymongo.database import Database
from pymongo.errors import PyMongoError

from config import CORS_ORIGINS, PORT, configure_logging
from database import get_db
from errors import CatalogError, UpstreamFailure, ValidationFailure
from query import parse_query
from repository import ProductRepository
from schemas import ProductIn, ProductUpdate, ReviewIn
from services import ProductService
from uploads import ImageHost, get_image_host

configure_logging()
logger = logging.getLogger(__name__)

# App setup
app = FastAPI(title="Product Catalog API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Dependencies
def get_product_service(db: Database = Depends(get_db)) -> ProductService:
    return ProductService(ProductRepository(db))


# Error responder: every failure ends up here
def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error_response(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return _error_response(ValidationFailure.status_code, _describe(exc.errors()))


@app.exception_handler(ValidationError)
async def model_validation_handler(request: Request, exc: ValidationError):
    return _error_response(ValidationFailure.status_code, _describe(exc.errors()))


@app.exception_handler(PyMongoError)
async def store_error_handler(request: Request, exc: PyMongoError):
    logger.exception("%s %s: store error", request.method, request.url.path)
    return _error_response(UpstreamFailure.status_code, "Database error")


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("%s %s: unhandled error", request.method, request.url.path)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def _describe(errors) -> str:
    parts = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request"


# Routes
@app.get("/")
def root():
    return {"message": "Product Catalog API"}


@app.get("/test")
def test_database(db: Database = Depends(get_db)):
    try:
        collections = db.list_collection_names()
        return {"backend": "ok", "database": "ok", "collections": collections}
    except PyMongoError as e:
        return {"backend": "ok", "database": f"error: {str(e)[:80]}"}


# Products
@app.get("/products")
def list_products(request: Request, service: ProductService = Depends(get_product_service)):
    try:
        query = parse_query(request.url.query)
    except ValueError as e:
        raise ValidationFailure(str(e))
    if query is None:
        return service.list_all()
    base_url = str(request.url.replace(query=""))
    return service.search(query, base_url)


@app.get("/products/exportToCSV")
def export_products_csv(service: ProductService = Depends(get_product_service)):
    return StreamingResponse(
        service.export_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="products.csv"'},
    )


@app.get("/products/{product_id}", status_code=status.HTTP_201_CREATED)
def get_product(product_id: str, service: ProductService = Depends(get_product_service)):
    return service.get(product_id)


@app.post("/products", status_code=status.HTTP_201_CREATED)
def add_product(payload: ProductIn, service: ProductService = Depends(get_product_service)):
    return {"success": True, "_id": service.add(payload)}


@app.put("/products/{product_id}")
def modify_product(product_id: str, payload: ProductUpdate, service: ProductService = Depends(get_product_service)):
    return service.modify(product_id, payload)


@app.delete("/products/{product_id}")
def delete_product(product_id: str, service: ProductService = Depends(get_product_service)):
    service.delete(product_id)
    return {"success": True, "message": "product removed"}


# Reviews
@app.post("/products/{product_id}/reviews", status_code=status.HTTP_201_CREATED)
def add_review(product_id: str, payload: ReviewIn, service: ProductService = Depends(get_product_service)):
    return {"success": True, "data": service.add_review(product_id, payload)}


@app.get("/products/{product_id}/reviews")
def list_reviews(product_id: str, service: ProductService = Depends(get_product_service)):
    return service.list_reviews(product_id)


@app.put("/products/{product_id}/reviews/{review_id}", status_code=status.HTTP_201_CREATED)
def modify_review(
    product_id: str,
    review_id: str,
    payload: ReviewIn,
    service: ProductService = Depends(get_product_service),
):
    return service.modify_review(product_id, review_id, payload)


@app.delete("/products/{product_id}/reviews/{review_id}", status_code=status.HTTP_202_ACCEPTED)
def delete_review(product_id: str, review_id: str, service: ProductService = Depends(get_product_service)):
    return service.delete_review(product_id, review_id)


# Exports and uploads
@app.get("/products/{product_id}/pdf")
def export_product_pdf(product_id: str, service: ProductService = Depends(get_product_service)):
    content = service.export_pdf(product_id)
    return StreamingResponse(
        io.BytesIO(content),
        media_type="application/pdf",
        headers={"Content-Disposition": 'attachment; filename="data.pdf"'},
    )


@app.post("/products/{product_id}/upload")
def upload_product_image(
    product_id: str,
    file: UploadFile = File(...),
    service: ProductService = Depends(get_product_service),
    image_host: ImageHost = Depends(get_image_host),
):
    # 404 before anything is sent to the image host
    service.get(product_id)
    url = image_host.upload(file, public_id=product_id)
    service.set_image(product_id, url)
    return {"success": True, "image_url": url}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=PORT)
