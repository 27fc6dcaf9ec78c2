import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Depends, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException

import auth
import config
import database
import orders
import profiles
import reels
from auth import get_current_account, get_optional_account, require_partner, require_user
from errors import AppError

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("reels.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is not None:
        database.ensure_indexes()
    yield


app = FastAPI(title="Reels Commerce API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------
# Errors & ceilings
# -----------------

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        loc = ".".join(str(p) for p in errors[0].get("loc", ()) if p != "body")
        message = f"{loc}: {errors[0].get('msg')}" if loc else errors[0].get("msg")
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"message": message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Server error"})


@app.middleware("http")
async def request_ceilings(request: Request, call_next):
    length = request.headers.get("content-length")
    if length and length.isdigit() and int(length) > config.MAX_BODY_BYTES:
        return JSONResponse(status_code=413, content={"message": "File too large. Maximum size is 50MB."})
    is_upload = "/upload" in request.url.path
    timeout = config.UPLOAD_REQUEST_TIMEOUT_SECONDS if is_upload else config.REQUEST_TIMEOUT_SECONDS
    try:
        return await asyncio.wait_for(call_next(request), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Request %s %s exceeded %ss", request.method, request.url.path, timeout)
        return JSONResponse(status_code=408, content={"message": "Request timeout"})

# -----------------
# Request bodies
# -----------------

class UserRegisterBody(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None

class PartnerRegisterBody(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    brand_name: Optional[str] = None
    description: Optional[str] = None

class LoginBody(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None

class UploadBody(BaseModel):
    video: Optional[str] = None  # base64 or data: URI
    caption: Optional[str] = None
    price: Optional[float] = None

class ReelUpdateBody(BaseModel):
    caption: Optional[str] = None
    price: Optional[float] = None

class CommentBody(BaseModel):
    text: Optional[str] = None

class CustomerInfoBody(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None

class OrderBody(BaseModel):
    reel_id: Optional[str] = None
    quantity: Optional[int] = None
    customer_info: Optional[CustomerInfoBody] = None
    notes: Optional[str] = None
    total_amount: Optional[float] = None

class StatusBody(BaseModel):
    status: Optional[str] = None

class PartnerProfileBody(BaseModel):
    name: Optional[str] = None
    brand_name: Optional[str] = None
    description: Optional[str] = None
    profile_pic: Optional[str] = None


def _account_id(account: dict) -> str:
    return str(account["_id"])


@app.get("/")
def root():
    return {"message": "Reels Commerce backend running"}

# ---------------
# Auth
# ---------------

def _session_response(response: Response, key: str, message: str, token: str, account: dict) -> dict:
    auth.set_session_cookie(response, token)
    return {"message": message, key: account, "token": token}


@app.post("/api/auth/user/register", status_code=201)
def register_user(body: UserRegisterBody, response: Response):
    token, account = auth.register("user", body.model_dump())
    return _session_response(response, "user", "User registered successfully", token, account)

@app.post("/api/auth/user/login")
def login_user(body: LoginBody, response: Response):
    token, account = auth.login("user", body.email, body.password)
    return _session_response(response, "user", "Login successful", token, account)

@app.get("/api/auth/user/logout")
def logout_user(response: Response):
    auth.clear_session_cookie(response)
    return {"message": "Logout successful"}

@app.post("/api/auth/partner/register", status_code=201)
def register_partner(body: PartnerRegisterBody, response: Response):
    token, account = auth.register("partner", body.model_dump())
    return _session_response(response, "partner", "Partner registered successfully", token, account)

@app.post("/api/auth/partner/login")
def login_partner(body: LoginBody, response: Response):
    token, account = auth.login("partner", body.email, body.password)
    return _session_response(response, "partner", "Login successful", token, account)

@app.get("/api/auth/partner/logout")
def logout_partner(response: Response):
    auth.clear_session_cookie(response)
    return {"message": "Logout successful"}

# ---------------
# Reels
# ---------------

@app.get("/api/reels")
def list_reels(page: Optional[str] = None, limit: Optional[str] = None, account=Depends(get_optional_account)):
    viewer = _account_id(account) if account else None
    return reels.list_reels(page, limit, viewer)

@app.get("/api/reels/partner")
def list_partner_reels(partner=Depends(require_partner)):
    return reels.list_by_partner(_account_id(partner))

@app.post("/api/reels/upload", status_code=201)
def upload_reel(body: UploadBody, partner=Depends(require_partner)):
    reel = reels.upload(_account_id(partner), body.video, body.caption, body.price)
    return {"message": "Reel uploaded successfully", "reel": reel}

@app.put("/api/reels/{reel_id}")
def update_reel(reel_id: str, body: ReelUpdateBody, partner=Depends(require_partner)):
    return reels.update_reel(reel_id, _account_id(partner), body.model_dump())

@app.delete("/api/reels/{reel_id}")
def delete_reel(reel_id: str, partner=Depends(require_partner)):
    reels.delete_reel(reel_id, _account_id(partner))
    return {"message": "Reel deleted successfully"}

@app.post("/api/reels/{reel_id}/like")
def like_reel(reel_id: str, account=Depends(get_current_account)):
    reel, liked = reels.toggle_like(reel_id, _account_id(account))
    return {"message": "Reel liked" if liked else "Reel unliked", "reel": reel}

@app.post("/api/reels/{reel_id}/save")
def save_reel(reel_id: str, account=Depends(get_current_account)):
    reel, saved = reels.toggle_save(reel_id, _account_id(account))
    return {"message": "Reel saved" if saved else "Reel unsaved", "reel": reel}

@app.post("/api/reels/{reel_id}/comment", status_code=201)
def comment_reel(reel_id: str, body: CommentBody, account=Depends(get_current_account)):
    reel = reels.add_comment(reel_id, _account_id(account), body.text)
    return {"message": "Comment added", "reel": reel}

# ---------------
# Orders
# ---------------

@app.post("/api/orders", status_code=201)
def place_order(body: OrderBody, user=Depends(require_user)):
    order = orders.place_order(
        _account_id(user),
        body.reel_id,
        body.quantity,
        body.customer_info.model_dump() if body.customer_info else None,
        body.notes,
        body.total_amount,
    )
    return {"message": "Order placed successfully", "order": order}

@app.get("/api/orders")
def list_orders(user=Depends(require_user)):
    return orders.list_for_user(_account_id(user))

@app.get("/api/orders/partner")
def list_partner_orders(partner=Depends(require_partner)):
    return orders.list_for_partner(_account_id(partner))

@app.patch("/api/orders/{order_id}/status")
def update_order_status(order_id: str, body: StatusBody, partner=Depends(require_partner)):
    order = orders.update_status(order_id, _account_id(partner), body.status)
    return {"message": "Order status updated", "order": order}

# ---------------
# Profiles
# ---------------

@app.get("/api/user/profile")
def user_profile(user=Depends(require_user)):
    return profiles.user_profile(_account_id(user))

@app.get("/api/partner/profile")
def partner_profile(partner=Depends(require_partner)):
    return profiles.partner_profile(_account_id(partner))

@app.put("/api/partner/profile")
def update_partner_profile(body: PartnerProfileBody, partner=Depends(require_partner)):
    return profiles.update_partner_profile(_account_id(partner), body.model_dump())

@app.get("/api/partner/analytics")
def partner_analytics(partner=Depends(require_partner)):
    return profiles.partner_analytics(_account_id(partner))

# ---------------
# Diagnostics
# ---------------

@app.get("/test")
def diagnostics():
    """Reports whether the database is reachable and which collections exist."""
    report = {"backend": "running", "database": "not configured", "collections": []}
    if database.db is None:
        return report
    try:
        report["collections"] = sorted(database.db.list_collection_names())
        report["database"] = "connected"
    except PyMongoError as e:
        logger.warning("Database diagnostics failed: %s", e)
        report["database"] = "unreachable"
    return report


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
