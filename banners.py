"""
Homepage banners: an image plus an optional link, newest first.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database

from database import get_db, get_documents, parse_object_id, serialize_doc, utcnow
from errors import NotFound, ValidationError
from schemas import Banner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/banners", tags=["banners"])


class CreateBannersBody(BaseModel):
    banners: Optional[List[Banner]] = None


class BannerLinkBody(BaseModel):
    link: str = ""


@router.get("")
def list_banners(db: Database = Depends(get_db)):
    banners = get_documents(db, "banner", sort=[("createdAt", DESCENDING)])
    return {"success": True, "message": "Banners fetched successfully", "data": serialize_doc(banners)}


@router.post("/createBanner", status_code=201)
def create_banners(body: CreateBannersBody, db: Database = Depends(get_db)):
    if body.banners is None:
        raise ValidationError("Invalid banner data")
    if not body.banners:
        return {"success": True, "data": []}

    now = utcnow()
    docs = [dict(b.model_dump(by_alias=True), createdAt=now, updatedAt=now) for b in body.banners]
    result = db["banner"].insert_many(docs)
    created = list(db["banner"].find({"_id": {"$in": result.inserted_ids}}))
    logger.info("Created %d banners", len(created))
    return {"success": True, "data": serialize_doc(created)}


@router.put("/{banner_id}")
def update_banner(banner_id: str, body: BannerLinkBody, db: Database = Depends(get_db)):
    banner = db["banner"].find_one_and_update(
        {"_id": parse_object_id(banner_id)},
        {"$set": {"link": body.link, "updatedAt": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not banner:
        raise NotFound("Banner not found")
    return {"success": True, "data": serialize_doc(banner)}


@router.delete("/{banner_id}")
def delete_banner(banner_id: str, db: Database = Depends(get_db)):
    result = db["banner"].delete_one({"_id": parse_object_id(banner_id)})
    if not result.deleted_count:
        raise NotFound("Banner not found")
    return {"success": True, "message": "Banner deleted"}
