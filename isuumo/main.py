"""FastAPI application for the ISUUMO chair and estate listing service."""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Body, Depends, FastAPI, File, Request, UploadFile, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from isuumo.context import AppContext, build_context, get_context
from isuumo.errors import InvalidInput, IsuumoError, NotFound
from isuumo.logging_config import get_logger
from isuumo.schemas import (
    ChairListResponse,
    ChairResponse,
    ChairSearchCondition,
    ChairSearchResponse,
    CoordinatesRequest,
    EmailRequest,
    EstateListResponse,
    EstateResponse,
    EstateSearchCondition,
    EstateSearchResponse,
    InitializeResponse,
)
from isuumo.services import bulk_loader, chairs, estates
from isuumo.services.ranges import parse_int


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Connect the stores, read search conditions and create tables on startup."""
    context = build_context()
    context.create_schema()
    app.state.context = context
    yield
    context.dispose()


# Create FastAPI app
app = FastAPI(
    title="ISUUMO API",
    description="Chair and estate search with cached hot queries",
    version="1.0.0",
    lifespan=lifespan
)


# ============== Error Mapping ==============

@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    logger.info("%s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(InvalidInput)
async def invalid_input_handler(request: Request, exc: InvalidInput):
    logger.info("%s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.info("%s %s: invalid request %s", request.method, request.url.path, exc.errors())
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(IsuumoError)
async def service_error_handler(request: Request, exc: IsuumoError):
    logger.error("%s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": str(exc)}
    )


def _require_email(body: Optional[EmailRequest], action: str) -> None:
    if body is None or not isinstance(body.email, str):
        raise InvalidInput(f"{action} failed : email not found in request body")


def _read_upload(upload: UploadFile) -> str:
    try:
        return upload.file.read().decode("utf-8")
    except UnicodeDecodeError as exc:
        raise InvalidInput(f"failed to read csv: {exc}") from exc


# ============== Initialize ==============

@app.post("/initialize", response_model=InitializeResponse)
def initialize(ctx: AppContext = Depends(get_context)):
    """Recreate both schemas and drop every cached entry."""
    ctx.reset()
    return InitializeResponse(language="python")


# ============== Chair Endpoints ==============

@app.get("/api/chair/search", response_model=ChairSearchResponse)
def search_chairs(request: Request, ctx: AppContext = Depends(get_context)):
    """
    Search in-stock chairs.

    At least one of priceRangeId, heightRangeId, widthRangeId, depthRangeId,
    kind, color or features is required, plus page and perPage.
    """
    count, found = chairs.search_chairs(ctx, request.query_params)
    return ChairSearchResponse(count=count, chairs=found)


@app.get("/api/chair/low_priced", response_model=ChairListResponse)
def get_low_priced_chairs(ctx: AppContext = Depends(get_context)):
    return ChairListResponse(chairs=chairs.get_low_priced_chairs(ctx))


@app.get("/api/chair/search/condition", response_model=ChairSearchCondition)
def get_chair_search_condition(ctx: AppContext = Depends(get_context)):
    return ctx.chair_condition


@app.get("/api/chair/{chair_id}", response_model=ChairResponse)
def get_chair_detail(chair_id: str, ctx: AppContext = Depends(get_context)):
    return chairs.get_chair(ctx, parse_int("id", chair_id))


@app.post("/api/chair", status_code=status.HTTP_201_CREATED)
def post_chairs(
    chairs_file: UploadFile = File(..., alias="chairs"),
    ctx: AppContext = Depends(get_context),
):
    """Bulk-import chairs from a CSV upload; all rows or none."""
    text = _read_upload(chairs_file)
    bulk_loader.load_chairs(ctx, text)
    return Response(status_code=status.HTTP_201_CREATED)


@app.post("/api/chair/buy/{chair_id}")
def buy_chair(
    chair_id: str,
    body: Optional[EmailRequest] = Body(None),
    ctx: AppContext = Depends(get_context),
):
    _require_email(body, "post buy chair")
    chairs.buy_chair(ctx, parse_int("id", chair_id))
    return Response(status_code=status.HTTP_200_OK)


# ============== Estate Endpoints ==============

@app.get("/api/estate/search", response_model=EstateSearchResponse)
def search_estates(request: Request, ctx: AppContext = Depends(get_context)):
    """
    Search estates.

    At least one of doorHeightRangeId, doorWidthRangeId, rentRangeId or
    features is required, plus page and perPage.
    """
    count, found = estates.search_estates(ctx, request.query_params)
    return EstateSearchResponse(count=count, estates=found)


@app.get("/api/estate/low_priced", response_model=EstateListResponse)
def get_low_priced_estates(ctx: AppContext = Depends(get_context)):
    return EstateListResponse(estates=estates.get_low_priced_estates(ctx))


@app.get("/api/estate/search/condition", response_model=EstateSearchCondition)
def get_estate_search_condition(ctx: AppContext = Depends(get_context)):
    return ctx.estate_condition


@app.post("/api/estate/nazotte", response_model=EstateSearchResponse)
def search_estate_nazotte(
    body: CoordinatesRequest, ctx: AppContext = Depends(get_context)
):
    """Estates inside the polygon drawn on the map."""
    found = estates.search_estates_nazotte(ctx, body.coordinates)
    return EstateSearchResponse(count=len(found), estates=found)


@app.get("/api/estate/{estate_id}", response_model=EstateResponse)
def get_estate_detail(estate_id: str, ctx: AppContext = Depends(get_context)):
    return estates.get_estate(ctx, parse_int("id", estate_id))


@app.post("/api/estate", status_code=status.HTTP_201_CREATED)
def post_estates(
    estates_file: UploadFile = File(..., alias="estates"),
    ctx: AppContext = Depends(get_context),
):
    """Bulk-import estates from a CSV upload; all rows or none."""
    text = _read_upload(estates_file)
    bulk_loader.load_estates(ctx, text)
    return Response(status_code=status.HTTP_201_CREATED)


@app.post("/api/estate/req_doc/{estate_id}")
def post_estate_request_document(
    estate_id: str,
    body: Optional[EmailRequest] = Body(None),
    ctx: AppContext = Depends(get_context),
):
    _require_email(body, "post request document")
    estates.get_estate(ctx, parse_int("id", estate_id))
    return Response(status_code=status.HTTP_200_OK)


@app.get("/api/recommended_estate/{chair_id}", response_model=EstateListResponse)
def get_recommended_estates(chair_id: str, ctx: AppContext = Depends(get_context)):
    """Estates whose door the chair fits through."""
    found = estates.recommend_estates_for_chair(ctx, parse_int("id", chair_id))
    return EstateListResponse(estates=found)
